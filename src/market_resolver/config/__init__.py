"""Configuration management for the market resolver."""

from .settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
