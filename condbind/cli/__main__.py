"""
condbind CLI entry point.

Usage:
    python -m condbind.cli scenarios
    python -m condbind.cli compare-ages 30 25
    python -m condbind.cli paged-read --pages 3
    python -m condbind.cli safe-cast 12 x
"""

import sys
from .main import main

if __name__ == "__main__":
    sys.exit(main())
