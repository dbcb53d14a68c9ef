"""Configuration module for respkv."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
