"""
nanocontext - conversation context compaction and reply guarding for assistant CLIs
"""

__version__ = "0.1.0"
