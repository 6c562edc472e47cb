"""Allows running the CLI as a module: python -m pubsuggest.cli"""

from pubsuggest.cli import app

if __name__ == "__main__":
    app()
