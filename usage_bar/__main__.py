import sys

from usage_bar.cli import main

if __name__ == "__main__":
    sys.exit(main())
