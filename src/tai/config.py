"""
Configuration for the assistant.

All configuration is loaded from environment variables, so the same
binary works against any OpenAI-compatible backend (Ollama, vLLM, LM
Studio, OpenAI) without a config file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class LLMConfig:
    """Configuration for the LLM client."""
    base_url: str
    api_key: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Load configuration from environment variables."""
        return cls(
            base_url=os.getenv("LLM_BASE_URL", "http://localhost:11434/v1"),
            api_key=os.getenv("LLM_API_KEY", ""),
            model=os.getenv("LLM_MODEL", ""),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
        )


@dataclass
class LoopConfig:
    """
    Configuration for the conversation loop.

    max_steps caps the number of model calls in one turn. A model that
    keeps asking for tools would otherwise loop forever.
    """
    max_steps: int = 25

    @classmethod
    def from_env(cls) -> "LoopConfig":
        """Load configuration from environment variables."""
        return cls(
            max_steps=int(os.getenv("TAI_MAX_STEPS", "25")),
        )


@dataclass
class HistoryConfig:
    """Where past interactions are kept and how many are recalled."""
    path: Path = field(default_factory=lambda: Path.home() / ".tai.history")
    max_entries: int = 10
    window_minutes: int = 60

    @classmethod
    def from_env(cls) -> "HistoryConfig":
        """Load configuration from environment variables."""
        raw_path = os.getenv("TAI_HISTORY_PATH")
        return cls(
            path=Path(raw_path).expanduser() if raw_path else Path.home() / ".tai.history",
            max_entries=int(os.getenv("TAI_HISTORY_SIZE", "10")),
            window_minutes=int(os.getenv("TAI_HISTORY_WINDOW_MINUTES", "60")),
        )


@dataclass
class TaiConfig:
    """Combined configuration for the whole assistant."""
    llm: LLMConfig
    loop: LoopConfig
    history: HistoryConfig

    @classmethod
    def from_env(cls) -> "TaiConfig":
        """Load all configuration from environment variables."""
        return cls(
            llm=LLMConfig.from_env(),
            loop=LoopConfig.from_env(),
            history=HistoryConfig.from_env(),
        )
