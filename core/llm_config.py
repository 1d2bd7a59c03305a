"""
LLM 配置模块

定义 LLM 提供商枚举与配置模型，并从 config/llm.yaml 与环境变量加载配置。

技术栈:
    - Python 3.12
    - Pydantic v2
    - PyYAML

设计约束:
    - API Key 只从环境变量读取，以 SecretStr 保存
    - 三个提供商都使用 OpenAI 兼容接口

使用示例:
    from core.llm_config import load_llm_config

    config = load_llm_config()             # 使用 llm.yaml 中的 default
    config = load_llm_config("deepseek")   # 指定提供商
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, SecretStr, field_validator

# 配置文件路径
CONFIG_DIR = Path(__file__).parent.parent / "config"
LLM_CONFIG_FILE = CONFIG_DIR / "llm.yaml"


class LLMProvider(str, Enum):
    """支持的 LLM 提供商"""

    OPENAI = "openai"
    DEEPSEEK = "deepseek"
    DASHSCOPE = "dashscope"

    @classmethod
    def from_string(cls, value: str) -> "LLMProvider":
        """
        从字符串创建枚举值

        Raises:
            ValueError: 如果提供商不支持
        """
        value_lower = value.lower()
        for provider in cls:
            if provider.value == value_lower:
                return provider
        raise ValueError(f"不支持的 LLM 提供商: {value}")


# 提供商元数据：默认地址与环境变量名
LLM_PROVIDER_INFO: Dict[LLMProvider, Dict[str, Any]] = {
    LLMProvider.OPENAI: {
        "default_base_url": "https://api.openai.com/v1",
        "api_key_env": "OPENAI_API_KEY",
        "base_url_env": "OPENAI_BASE_URL",
    },
    LLMProvider.DEEPSEEK: {
        "default_base_url": "https://api.deepseek.com",
        "api_key_env": "DEEPSEEK_API_KEY",
        "base_url_env": "DEEPSEEK_BASE_URL",
    },
    LLMProvider.DASHSCOPE: {
        "default_base_url": "https://dashscope.aliyuncs.com/compatible-mode/v1",
        "api_key_env": "DASHSCOPE_API_KEY",
        "base_url_env": "DASHSCOPE_BASE_URL",
    },
}


class LLMConfig(BaseModel):
    """
    LLM 配置模型

    Attributes:
        provider: LLM 提供商
        model_name: 模型名称
        api_key: API 密钥
        base_url: API 基础 URL（留空使用提供商默认值）
        temperature: 温度参数
        max_tokens: 最大输出 token 数
        timeout: 请求超时时间（秒）
    """

    provider: LLMProvider = Field(default=LLMProvider.DEEPSEEK, description="LLM 提供商")
    model_name: str = Field(default="deepseek-chat", description="模型名称")
    api_key: Optional[SecretStr] = Field(default=None, description="API 密钥")
    base_url: Optional[str] = Field(default=None, description="API 基础 URL")
    temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="温度参数（0-2）")
    max_tokens: Optional[int] = Field(default=None, ge=1, description="最大输出 token 数")
    timeout: Optional[float] = Field(default=60.0, ge=1.0, description="请求超时时间（秒）")

    @field_validator("provider", mode="before")
    @classmethod
    def validate_provider(cls, v):
        """验证并转换 provider"""
        if isinstance(v, str):
            return LLMProvider.from_string(v)
        return v

    def get_api_key_value(self) -> Optional[str]:
        if self.api_key is None:
            return None
        return self.api_key.get_secret_value()

    def resolved_base_url(self) -> str:
        return self.base_url or LLM_PROVIDER_INFO[self.provider]["default_base_url"]

    def model_dump_safe(self) -> dict:
        """安全导出配置（隐藏敏感信息）"""
        data = self.model_dump(exclude={"api_key"})
        data["has_api_key"] = self.api_key is not None
        return data


def load_yaml_config(path: Optional[Path] = None) -> dict:
    """
    从 YAML 文件加载配置

    Raises:
        FileNotFoundError: 如果配置文件不存在
    """
    config_file = path or LLM_CONFIG_FILE
    if not config_file.exists():
        raise FileNotFoundError(f"配置文件不存在: {config_file}")

    with open(config_file, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_llm_config(provider: Optional[str] = None, path: Optional[Path] = None) -> LLMConfig:
    """
    加载 LLM 配置

    从 YAML 文件加载基础配置，从环境变量读取 API Key 和 Base URL。

    Args:
        provider: 提供商名称，默认使用配置文件中的 default
        path: 配置文件路径，默认 config/llm.yaml

    Raises:
        ValueError: 如果提供商不支持或配置中不存在
    """
    yaml_config = load_yaml_config(path)

    if provider is None:
        config_data = yaml_config.get("default", {})
        provider = config_data.get("provider", LLMProvider.DEEPSEEK.value)
    else:
        config_data = yaml_config.get(provider, {})
        if not config_data:
            raise ValueError(f"配置文件中未找到提供商 '{provider}' 的配置")

    llm_provider = LLMProvider.from_string(provider)
    info = LLM_PROVIDER_INFO[llm_provider]
    api_key_str = os.environ.get(info["api_key_env"])

    return LLMConfig(
        provider=llm_provider,
        model_name=config_data.get("model_name", "deepseek-chat"),
        api_key=SecretStr(api_key_str) if api_key_str else None,
        base_url=os.environ.get(info["base_url_env"]),
        temperature=config_data.get("temperature", 0.7),
        max_tokens=config_data.get("max_tokens"),
        timeout=config_data.get("timeout", 60.0),
    )


__all__ = [
    "LLMProvider",
    "LLM_PROVIDER_INFO",
    "LLMConfig",
    "load_yaml_config",
    "load_llm_config",
]
