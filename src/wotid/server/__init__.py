# SPDX-License-Identifier: MIT
# Copyright (c) 2026 wot.id Contributors

"""wot.id HTTP identity service.

Usage:
    # Start the server
    wotid serve

    # Or with uvicorn directly
    uvicorn wotid.server.app:create_app --factory --port 8081
"""

from .app import create_app, run
from .config import ServerSettings, clear_settings_cache, get_settings

__all__ = [
    "ServerSettings",
    "clear_settings_cache",
    "create_app",
    "get_settings",
    "run",
]
