"""Allow ``python -m pysocialite``."""

import sys

from .cli import main


sys.exit(main())
