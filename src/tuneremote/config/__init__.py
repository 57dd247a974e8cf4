"""Configuration management for tuneremote.

Loads and validates YAML-based configuration with Pydantic models.
Supports environment variable overrides for the access token and the
automation endpoint address.
"""

from tuneremote.config.settings import Settings, load_settings

__all__ = ["Settings", "load_settings"]
