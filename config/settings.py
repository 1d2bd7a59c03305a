"""
应用配置管理模块

使用 Pydantic Settings 实现类型安全的配置管理，支持从环境变量和 .env 文件读取配置。

使用示例:
    from config import get_settings

    settings = get_settings()
    print(settings.log_level)
    print(settings.fault_probability)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    应用配置类

    所有配置项均可通过环境变量或 .env 文件设置。
    环境变量名称为大写形式（如 FAULT_PROBABILITY）。

    Attributes:
        default_llm_provider: 默认 LLM 提供商（为空时使用 llm.yaml 中的 default）
        fault_probability: 工具故障注入概率（0 表示关闭）
        fault_seed: 故障注入随机种子（None 表示不固定）
        agent_max_steps: ReAct Agent 最大循环步数
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # 忽略未定义的环境变量
    )

    # -------------------------------------------------------------------------
    # LLM 配置（API Key 由 core.llm_config 按提供商从环境变量读取）
    # -------------------------------------------------------------------------
    default_llm_provider: Optional[str] = Field(
        default=None,
        description="默认使用的 LLM 提供商 (openai/deepseek/dashscope)",
    )

    # -------------------------------------------------------------------------
    # 应用配置
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="日志级别",
    )

    # -------------------------------------------------------------------------
    # 工具故障注入（仅用于测试重试逻辑）
    # -------------------------------------------------------------------------
    fault_probability: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="工具临时故障注入概率，0 表示关闭",
    )
    fault_seed: Optional[int] = Field(
        default=None,
        description="故障注入随机种子，固定后结果可复现",
    )

    # -------------------------------------------------------------------------
    # Agent 配置
    # -------------------------------------------------------------------------
    agent_max_steps: int = Field(
        default=12,
        ge=1,
        description="ReAct Agent 最大循环步数（模型调用 + 工具调用）",
    )

    @property
    def fault_injection_enabled(self) -> bool:
        return self.fault_probability > 0


@lru_cache
def get_settings() -> Settings:
    """
    获取应用配置单例

    使用 lru_cache 确保配置只加载一次。
    """
    return Settings()


def reset_settings_cache() -> None:
    """
    重置配置缓存

    在配置变更后调用此方法清除缓存，使新配置生效。
    """
    get_settings.cache_clear()
