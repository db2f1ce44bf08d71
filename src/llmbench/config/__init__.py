"""Configuration subsystem for llmbench.

Public API:
- UserConfig: User preferences model (remote endpoint, toolbox, storage)
- load_user_config: Load user preferences from XDG config dir
- get_user_config_path: Return the XDG user config path
"""

from llmbench.config.user_config import (
    UserConfig,
    get_user_config_path,
    load_user_config,
)

__all__ = [
    "UserConfig",
    "get_user_config_path",
    "load_user_config",
]
