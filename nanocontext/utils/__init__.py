"""Utility helpers."""

from nanocontext.utils.helpers import atomic_write_json, atomic_write_text, ensure_dir, read_json

__all__ = ["atomic_write_json", "atomic_write_text", "ensure_dir", "read_json"]
