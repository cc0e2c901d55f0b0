import sys

from omr_scoring.cli import main

if __name__ == "__main__":
    sys.exit(main())
