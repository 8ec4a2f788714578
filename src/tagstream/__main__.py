#!/usr/bin/env python3
"""
tagstream - entry point for python -m tagstream
"""

import sys

from tagstream.cli import main

if __name__ == "__main__":
    sys.exit(main())
