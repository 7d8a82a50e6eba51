"""Allow running as ``python -m chroni``."""

from .cli import main

if __name__ == "__main__":
    main()
