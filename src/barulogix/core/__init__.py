"""BaruLogix core module.

Shared components used across the service:
- Configuration management
- Cached settings accessor
"""

from barulogix.core.config import (
    AuthSettings,
    ConfigValidationError,
    DatabaseSettings,
    Environment,
    IdentityProviderSettings,
    OperationsSettings,
    Settings,
)
from barulogix.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "AuthSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "Environment",
    "IdentityProviderSettings",
    "OperationsSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
