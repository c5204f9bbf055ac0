"""Configuration module for nanocontext."""

from nanocontext.config.loader import load_config
from nanocontext.config.schema import Config

__all__ = ["Config", "load_config"]
