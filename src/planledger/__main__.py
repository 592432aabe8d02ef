# planledger/__main__.py
# Entry point for `python -m planledger`.
from .cli import cli

if __name__ == "__main__":
    cli()
