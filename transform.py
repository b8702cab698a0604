import sys

from remold.remold_cli import main

if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
