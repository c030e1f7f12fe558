"""Allow ``python -m teams_local``."""

import sys

from .cli import main

sys.exit(main())
