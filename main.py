import sys

from jpegtune.app import main


if __name__ == "__main__":
    sys.exit(main())
