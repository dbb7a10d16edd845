import sys

from tai.cli import main

sys.exit(main())
