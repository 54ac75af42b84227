"""Command-line entry points and configuration."""

from .config import Config

__all__ = ["Config"]
