"""
SlideFoundry - Core Module
==========================

Configuration and the error taxonomy shared by every service.
"""

from slidefoundry.core.config import settings, get_settings, Settings
from slidefoundry.core.errors import DeckError, ErrorCode

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "DeckError",
    "ErrorCode",
]
