"""Allow running as ``python -m firmscope``."""

import sys

from .cli import main

sys.exit(main())
