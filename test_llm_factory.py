"""
测试 LLM 配置加载与工厂
"""

import pytest
from langchain_openai import ChatOpenAI

from core.llm_config import LLMConfig, LLMProvider, load_llm_config
from core.llm_factory import LLMFactory


@pytest.fixture
def llm_yaml(tmp_path):
    path = tmp_path / "llm.yaml"
    path.write_text(
        "default:\n"
        "  provider: deepseek\n"
        "  model_name: deepseek-chat\n"
        "  temperature: 0.2\n"
        "openai:\n"
        "  model_name: gpt-4o-mini\n",
        encoding="utf-8",
    )
    return path


def test_default_section_and_env_key(monkeypatch, llm_yaml):
    monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-test")
    monkeypatch.delenv("DEEPSEEK_BASE_URL", raising=False)

    config = load_llm_config(path=llm_yaml)

    assert config.provider == LLMProvider.DEEPSEEK
    assert config.temperature == 0.2
    assert config.get_api_key_value() == "sk-test"
    assert config.resolved_base_url() == "https://api.deepseek.com"


def test_named_provider_uses_its_env(monkeypatch, llm_yaml):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPENAI_BASE_URL", "http://localhost:8000/v1")

    config = load_llm_config("openai", path=llm_yaml)

    assert config.model_name == "gpt-4o-mini"
    assert config.api_key is None
    assert config.resolved_base_url() == "http://localhost:8000/v1"


def test_missing_provider_section_is_rejected(llm_yaml):
    with pytest.raises(ValueError):
        load_llm_config("dashscope", path=llm_yaml)


def test_missing_file_is_reported(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_llm_config(path=tmp_path / "absent.yaml")


def test_safe_dump_hides_api_key():
    config = LLMConfig(provider="openai", model_name="gpt-4o-mini", api_key="sk-secret")
    data = config.model_dump_safe()
    assert "api_key" not in data
    assert data["has_api_key"] is True


def test_factory_requires_api_key():
    with pytest.raises(ValueError):
        LLMFactory.create_llm(LLMConfig(provider="deepseek"))


def test_factory_builds_openai_compatible_model():
    config = LLMConfig(provider="dashscope", model_name="qwen-plus", api_key="sk-test", temperature=0.1)

    llm = LLMFactory.create_llm(config)

    assert isinstance(llm, ChatOpenAI)
    assert llm.model_name == "qwen-plus"
    assert llm.openai_api_base == "https://dashscope.aliyuncs.com/compatible-mode/v1"
