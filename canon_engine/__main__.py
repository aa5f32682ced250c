"""Allow ``python -m canon_engine``."""

import sys

from canon_engine.cli import main

sys.exit(main())
