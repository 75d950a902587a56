#!/usr/bin/env python3
"""Game Manager - Module entry point."""
import sys

from game_manager.cli import main

if __name__ == "__main__":
    sys.exit(main())
