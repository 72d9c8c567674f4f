"""console script entrypoint for the pbus CLI."""

from .main import main

if __name__ == "__main__":
    raise SystemExit(main())
