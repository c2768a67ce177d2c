"""Entry point for ``python -m logcache``."""

import sys

from logcache.cli import main

if __name__ == "__main__":
    sys.exit(main())
