import sys

from pisa_math.cli import main


if __name__ == "__main__":
    sys.exit(main())
