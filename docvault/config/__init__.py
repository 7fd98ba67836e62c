"""Configuration module: exports Settings and load_config."""

from docvault.config.loader import load_config
from docvault.config.settings import Settings

__all__ = ["Settings", "load_config"]
