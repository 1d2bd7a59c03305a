"""
工具配置管理模块

从 config/tool.yaml 读取工具的超时时间和故障注入配置。
支持多层级配置优先级：
1. 工具级别配置（tools.<tool_name>）
2. 全局默认配置（global_defaults）
3. 硬编码默认值（timeout=60.0, fault_probability=0.0）

特性：
- 支持热重载配置
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# 硬编码默认值（最后的兜底）
HARDCODED_TIMEOUT = 60.0
HARDCODED_FAULT_PROBABILITY = 0.0

# 配置文件路径
CONFIG_FILE = Path(__file__).parent / "tool.yaml"


class ToolConfig:
    """工具配置管理类"""

    def __init__(self, config_path: Optional[Path] = None):
        """
        初始化工具配置

        Args:
            config_path: 配置文件路径，如果为 None 则使用默认路径
        """
        self.config_path = Path(config_path) if config_path else CONFIG_FILE
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _default_config(self) -> Dict[str, Any]:
        return {
            "global_defaults": {
                "timeout": HARDCODED_TIMEOUT,
                "fault_probability": HARDCODED_FAULT_PROBABILITY,
            },
            "tools": {},
        }

    def _load_config(self) -> None:
        """从 YAML 文件加载配置"""
        try:
            if not self.config_path.exists():
                logger.warning(f"工具配置文件不存在: {self.config_path}，使用硬编码默认值")
                self._config = self._default_config()
                return

            with open(self.config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}

            logger.info(f"成功加载工具配置: {self.config_path}")

        except Exception as e:
            logger.error(f"加载工具配置失败: {e}，使用硬编码默认值", exc_info=True)
            self._config = self._default_config()

    def _lookup(self, tool_name: str, key: str) -> Optional[Any]:
        # 1. 工具级别配置
        tool_config = (self._config.get("tools") or {}).get(tool_name) or {}
        if key in tool_config:
            return tool_config[key]

        # 2. 全局默认配置
        global_defaults = self._config.get("global_defaults") or {}
        if key in global_defaults:
            return global_defaults[key]
        return None

    def get_tool_timeout(self, tool_name: str) -> Optional[float]:
        """
        获取工具的超时时间

        Args:
            tool_name: 工具名称

        Returns:
            Optional[float]: 超时时间（秒）；配置为 null 时表示不限制
        """
        tool_config = (self._config.get("tools") or {}).get(tool_name) or {}
        if "timeout" in tool_config:
            value = tool_config["timeout"]
            return float(value) if value is not None else None

        value = self._lookup(tool_name, "timeout")
        if value is None:
            return HARDCODED_TIMEOUT
        return float(value)

    def get_fault_probability(self, tool_name: str) -> float:
        """
        获取工具的故障注入概率

        Args:
            tool_name: 工具名称

        Returns:
            float: 0~1 之间的概率，超出范围时截断
        """
        value = self._lookup(tool_name, "fault_probability")
        if value is None:
            return HARDCODED_FAULT_PROBABILITY
        return min(max(float(value), 0.0), 1.0)

    def reload(self) -> None:
        """重新加载配置文件（支持热更新）"""
        logger.info("重新加载工具配置...")
        self._load_config()


# 全局单例
_tool_config_instance: Optional[ToolConfig] = None


def get_tool_config() -> ToolConfig:
    """
    获取全局工具配置实例（单例模式）
    """
    global _tool_config_instance
    if _tool_config_instance is None:
        _tool_config_instance = ToolConfig()
    return _tool_config_instance


def reload_tool_config() -> None:
    """重新加载工具配置（用于热更新）"""
    get_tool_config().reload()


__all__ = [
    "ToolConfig",
    "get_tool_config",
    "reload_tool_config",
]
