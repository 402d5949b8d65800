"""
Configuration package for the hoarding rental service.
"""

from hoarding_rental.config.settings import Settings, get_settings, settings

__all__ = ['Settings', 'get_settings', 'settings']
