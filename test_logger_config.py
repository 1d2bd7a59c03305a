"""
测试日志配置：logger.yaml 合并规则、configure_logging、工具调用记录持久化
"""

import json
import logging

import pytest

from core import tool_log
from core.logger_config import (
    _LOGGER_NAMES,
    LOGGER_TYPES,
    LoggerConfig,
    configure_logging,
    get_logger_config,
)


@pytest.fixture(autouse=True)
def fresh_tool_logs():
    tool_log.clear_tool_logs()
    yield
    tool_log.clear_tool_logs()


@pytest.fixture
def logger_yaml(tmp_path):
    """切换到临时 logger.yaml，结束后恢复默认配置并清理日志器"""
    original = LoggerConfig._config_path

    def _use(text: str):
        path = tmp_path / "logger.yaml"
        path.write_text(text, encoding="utf-8")
        LoggerConfig.set_config_path(path)

    yield _use

    for names in _LOGGER_NAMES.values():
        for name in names:
            target = logging.getLogger(name)
            for handler in list(target.handlers):
                target.removeHandler(handler)
                handler.close()
            target.setLevel(logging.NOTSET)
            target.propagate = True
            target.disabled = False
    LoggerConfig.set_config_path(original)


def test_bundled_config_defines_every_logger_type():
    for logger_type in LOGGER_TYPES:
        config = get_logger_config(logger_type)
        assert config["enabled"] is True
        assert config["enable_file"] is False


def test_unknown_logger_type_is_rejected():
    with pytest.raises(ValueError):
        get_logger_config("metrics")


def test_logger_type_falls_back_to_global(logger_yaml, tmp_path):
    logger_yaml(
        "global:\n"
        f"  log_dir: '{tmp_path / 'logs'}'\n"
        "  default_level: WARNING\n"
        "  enable_console: false\n"
        "tool:\n"
        "  level: DEBUG\n"
    )

    tool = get_logger_config("tool")
    stream = get_logger_config("stream")

    assert tool["level"] == "DEBUG"
    assert stream["level"] == "WARNING"
    assert stream["log_dir"] == str(tmp_path / "logs")
    assert stream["enable_console"] is False
    assert stream["file_pattern"] == "stream.log"


def test_configure_logging_writes_enabled_files(logger_yaml, tmp_path):
    log_dir = tmp_path / "logs"
    logger_yaml(
        "global:\n"
        "  default_level: INFO\n"
        "stream:\n"
        "  level: INFO\n"
        f"  log_dir: '{log_dir}'\n"
        "  enable_file: true\n"
        "  enable_console: false\n"
        "callback:\n"
        "  enabled: false\n"
    )

    configure_logging()
    logging.getLogger("core.stream_drain").info("drain finished")
    for handler in logging.getLogger("core.stream_drain").handlers:
        handler.flush()

    assert "drain finished" in (log_dir / "stream.log").read_text(encoding="utf-8")
    assert logging.getLogger("core.stream_drain").propagate is False
    assert logging.getLogger("core.logger_callback").disabled is True


def test_tool_calls_are_persisted_when_file_enabled(logger_yaml, tmp_path):
    log_dir = tmp_path / "tool_logs"
    logger_yaml(f"tool:\n  log_dir: '{log_dir}'\n  enable_file: true\n")

    entry = tool_log.record_tool_call("query_dishes", '{"restaurant_id": "1001"}', "[]", "succeeded", 0.5)
    # 单线程执行器按提交顺序执行，等待一个空任务即可确认写入完成
    tool_log._persist_executor.submit(lambda: None).result(timeout=5)

    files = list((log_dir / "query_dishes").glob("log_*.json"))
    assert len(files) == 1
    saved = json.loads(files[0].read_text(encoding="utf-8").splitlines()[0])
    assert saved == entry
    assert saved["is_success"] is True


def test_records_accumulate_and_clear_in_current_context():
    tool_log.clear_tool_logs()
    tool_log.record_tool_call("a", "{}", "ok", "succeeded")
    tool_log.record_tool_call("b", "{}", "boom", "failed")

    assert [(e["tool_name"], e["is_success"]) for e in tool_log.get_tool_logs()] == [("a", True), ("b", False)]

    tool_log.clear_tool_logs()
    assert tool_log.get_tool_logs() == []
