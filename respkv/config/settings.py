"""
respkv Configuration Settings

This module contains the configuration constants for the respkv server.
Only the port can be overridden, from the command line.
"""

from dataclasses import dataclass


@dataclass
class Settings:
    """Server configuration settings."""

    # Network settings
    HOST: str = "localhost"
    PORT: int = 3333

    # Connection settings
    READ_BUFFER_SIZE: int = 4096
    MAX_REQUEST_SIZE: int = 512 * 1024 * 1024  # Largest unframed request kept in memory

    # Logging settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# Global settings instance
settings = Settings()
