import sys

from shell_autocompleter.cli.cli import main

if __name__ == "__main__":
    sys.exit(main())
