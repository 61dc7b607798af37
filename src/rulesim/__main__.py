"""Entry point for running rulesim as a module.

Allows running the application with:
    python -m rulesim
"""

from rulesim.cli import app

if __name__ == "__main__":
    app()
