"""Allow ``python -m vnbrowse``."""

from vnbrowse.cli.typer_app import app

if __name__ == "__main__":
    app()
