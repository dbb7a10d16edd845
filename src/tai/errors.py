"""
Error taxonomy for tool execution.

Every tool failure is raised as one of these and converted to a
``{"error": message}`` payload at the registry boundary. The message is
what the model (and the operator) will read, so it should say what went
wrong in plain words.
"""


class ToolError(Exception):
    """Base class for failures raised while executing a tool call."""
    pass


class ValidationError(ToolError):
    """Missing or malformed tool arguments."""
    pass


class ParseError(ValidationError):
    """Tool-call arguments or a patch specification could not be parsed."""
    pass


class PathEscapeError(ToolError):
    """A path resolved outside the workspace root."""
    pass


class ToolIOError(ToolError):
    """A read, write or permission failure on the filesystem."""
    pass


class ProcessError(ToolError):
    """A shell command could not be spawned or waited on."""
    pass


class CommandTimeoutError(ProcessError):
    """A shell command ran past its deadline and was killed."""
    pass


class NetworkError(ToolError):
    """A fetch failed to connect, timed out, or used a forbidden scheme."""
    pass


class WorkspaceError(Exception):
    """The workspace root itself is unusable. Fatal for the session."""
    pass
