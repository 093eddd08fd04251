"""
Entry point for running locsync as a module.

Usage:
    python -m locsync --help
    python -m locsync sync --base HEAD~1 --head HEAD
    python -m locsync diff old.json new.json
"""
from .cli import app


if __name__ == "__main__":
    app()
