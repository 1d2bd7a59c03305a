"""
Config 模块

提供应用配置（Settings）与工具配置（ToolConfig）。

使用示例:
    from config import get_settings, get_tool_config

    settings = get_settings()
    timeout = get_tool_config().get_tool_timeout("query_restaurants")
"""

from config.settings import Settings, get_settings, reset_settings_cache
from config.tool_config import ToolConfig, get_tool_config, reload_tool_config

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings_cache",
    "ToolConfig",
    "get_tool_config",
    "reload_tool_config",
]
