"""
日志配置管理模块

读取和解析 config/logger.yaml 配置文件，提供配置访问接口，并据此初始化标准库 logging。

使用示例:
    from core.logger_config import configure_logging, get_logger_config

    configure_logging()
    config = get_logger_config("tool")
    print(config["log_dir"])  # "Logs/tool_logs"
"""

import logging
import sys
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

LOGGER_TYPES = ("callback", "tool", "stream")

# 各日志器类型对应的 logging 名称
_LOGGER_NAMES = {
    "callback": ["core.logger_callback", "core.callbacks"],
    "tool": ["core.safe_tool", "core.tool_log", "Tools"],
    "stream": ["core.stream", "core.stream_drain"],
}

DEFAULT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class LoggerConfig:
    """
    日志配置管理器

    单例模式，负责读取和解析 logger.yaml 配置文件。
    """

    _instance: Optional["LoggerConfig"] = None
    _config: Dict[str, Any] = {}
    _config_path: Path = Path(__file__).parent.parent / "config" / "logger.yaml"

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _load_config(self) -> None:
        """
        加载配置文件
        """
        if not self._config_path.exists():
            logger.warning(f"日志配置文件不存在: {self._config_path}，使用默认配置")
            self._config = self._get_default_config()
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
            logger.info(f"成功加载日志配置: {self._config_path}")
        except Exception as e:
            logger.error(f"加载日志配置失败: {e}，使用默认配置", exc_info=True)
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        return {
            "global": {
                "log_dir": "Logs",
                "default_level": "INFO",
                "enable_console": True,
                "enable_file": False,
            },
            "callback": {
                "level": "INFO",
                "enable_console": True,
                "enable_file": False,
            },
            "tool": {
                "level": "DEBUG",
                "log_dir": "Logs/tool_logs",
                "enable_console": False,
                "enable_file": True,
            },
            "stream": {
                "level": "INFO",
                "enable_console": True,
                "enable_file": False,
            },
        }

    @classmethod
    def reload_config(cls) -> None:
        """
        重新加载配置

        清除缓存并重新读取配置文件。
        """
        cls()._load_config()
        cls.get_logger_config.cache_clear()
        cls.get_global_config.cache_clear()
        logger.info("日志配置已重新加载")

    @classmethod
    def set_config_path(cls, path: Path) -> None:
        """切换配置文件路径并重新加载（测试与多环境部署使用）"""
        cls._config_path = Path(path)
        cls.reload_config()

    @classmethod
    @lru_cache(maxsize=4)
    def get_logger_config(cls, logger_type: str) -> Dict[str, Any]:
        """
        获取指定类型的日志器配置

        Args:
            logger_type: 日志器类型 ("callback" | "tool" | "stream")

        Returns:
            Dict[str, Any]: 合并全局默认值后的配置字典

        Raises:
            ValueError: 如果 logger_type 无效
        """
        instance = cls()

        if logger_type not in LOGGER_TYPES:
            raise ValueError(f"无效的日志器类型: {logger_type}")

        logger_config = instance._config.get(logger_type, {}) or {}
        global_config = instance.get_global_config()

        return {
            "enabled": logger_config.get("enabled", True),
            "level": logger_config.get("level", global_config.get("default_level", "INFO")),
            "log_dir": logger_config.get("log_dir", global_config.get("log_dir", "Logs")),
            "file_pattern": logger_config.get("file_pattern", f"{logger_type}.log"),
            "enable_console": logger_config.get("enable_console", global_config.get("enable_console", True)),
            "enable_file": logger_config.get("enable_file", global_config.get("enable_file", False)),
        }

    @classmethod
    @lru_cache(maxsize=1)
    def get_global_config(cls) -> Dict[str, Any]:
        """
        获取全局配置
        """
        instance = cls()
        return instance._config.get("global", {}) or {}


def get_logger_config(logger_type: str) -> Dict[str, Any]:
    """便捷函数：获取日志器配置"""
    return LoggerConfig.get_logger_config(logger_type)


def get_global_config() -> Dict[str, Any]:
    """便捷函数：获取全局配置"""
    return LoggerConfig.get_global_config()


def configure_logging(level: Optional[str] = None) -> None:
    """
    按 logger.yaml 初始化日志

    - 根日志器使用全局级别（或显式传入的 level）输出到控制台；
    - callback / tool / stream 三类日志器按各自配置设置级别，
      并在 enable_file 时写入 {log_dir}/{file_pattern}。

    tool 日志器的 enable_file 同时控制工具调用记录的 NDJSON 持久化（见 core.tool_log），
    记录写入 {log_dir}/{tool_name}/ 子目录。

    Args:
        level: 覆盖全局日志级别（通常来自 Settings.log_level）
    """
    global_config = get_global_config()
    root_level = (level or global_config.get("default_level", "INFO")).upper()
    logging.basicConfig(level=root_level, format=DEFAULT_FORMAT, stream=sys.stdout)

    for logger_type in LOGGER_TYPES:
        config = get_logger_config(logger_type)
        for name in _LOGGER_NAMES[logger_type]:
            target = logging.getLogger(name)
            if not config["enabled"]:
                target.disabled = True
                continue
            target.setLevel(str(config["level"]).upper())
            if not config["enable_console"]:
                # 不向根日志器的控制台输出传播
                target.propagate = False
            if config["enable_file"]:
                log_dir = Path(config["log_dir"])
                log_dir.mkdir(parents=True, exist_ok=True)
                handler = logging.FileHandler(log_dir / config["file_pattern"], encoding="utf-8")
                handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
                target.addHandler(handler)


__all__ = [
    "LoggerConfig",
    "LOGGER_TYPES",
    "configure_logging",
    "get_logger_config",
    "get_global_config",
]
