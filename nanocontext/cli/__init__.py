"""Command-line interface for nanocontext."""
