"""
Entry point for running nanocontext as a module: python -m nanocontext
"""

from nanocontext.cli.commands import app

if __name__ == "__main__":
    app()
