"""Allow running as ``python -m nestad``."""

import sys

from .main import main

sys.exit(main())
