"""Configuration module for loading and managing application settings"""
from typing import Dict, Any, Optional
from .lib.load_settings_conf import load_settings_conf, validate_settings, SettingsError

__all__ = ['get_settings', 'load_settings_conf', 'validate_settings', 'SettingsError']

_settings: Optional[Dict[str, Any]] = None


def get_settings(settings_path: str = ".") -> Dict[str, Any]:
    """Return process settings, loading them on first use."""
    global _settings

    if _settings is None:
        try:
            _settings = load_settings_conf(settings_path)
        except SettingsError as e:
            # Re-raise the error but provide more context
            raise SettingsError(
                f"Configuration Error\n"
                "=================\n\n"
                f"{str(e)}\n\n"
                "Provide settings.conf or CATALOG_* environment variables.\n"
                "See settings.conf.example for the available keys."
            )
    return _settings
