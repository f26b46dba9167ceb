"""Main entry point for the vaymn package."""

from vaymn.cli import app


if __name__ == "__main__":
    app()
