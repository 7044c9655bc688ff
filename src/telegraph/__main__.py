"""Entry point for ``python -m telegraph``."""

from .cli import main

if __name__ == "__main__":
    main()
