"""
LLM 工厂模块

根据 LLMConfig 创建 LangChain 聊天模型，三个提供商都走 OpenAI 兼容接口。

使用示例:
    from core.llm_config import load_llm_config
    from core.llm_factory import LLMFactory

    llm = LLMFactory.create_llm(load_llm_config())
"""

import logging

from langchain_core.language_models.chat_models import BaseChatModel

from core.llm_config import LLMConfig

logger = logging.getLogger(__name__)


class LLMFactory:
    """LLM 工厂类"""

    @classmethod
    def create_llm(cls, config: LLMConfig) -> BaseChatModel:
        """
        根据配置创建 LLM 实例

        Raises:
            ValueError: 缺少 API Key
        """
        if config.api_key is None:
            raise ValueError(f"未配置 {config.provider.value} 的 API Key")

        logger.info(f"创建 LLM: {config.model_dump_safe()}")

        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=config.model_name,
            api_key=config.get_api_key_value(),
            base_url=config.resolved_base_url(),
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout,
        )


__all__ = [
    "LLMFactory",
]
