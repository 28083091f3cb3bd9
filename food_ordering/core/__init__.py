"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from food_ordering.core.config import (
    get_settings,
    Settings,
    EnvironmentMode,
    TokenExpiryMode,
    OrderTotalPolicy,
)

__all__ = [
    "get_settings",
    "Settings",
    "EnvironmentMode",
    "TokenExpiryMode",
    "OrderTotalPolicy",
]
