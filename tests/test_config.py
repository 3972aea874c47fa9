import logging

import pytest

from chatrelay.cli import build_config
from chatrelay.config import RelayRuntimeConfig, apply_environment
from chatrelay.logging_config import configure_logging, parse_level
from chatrelay.util import normalize_username, parse_port, sanitize_line


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, 9000),
        ("9100", 9100),
        (" 9100 ", 9100),
        ("abc", 9000),
        ("", 9000),
        ("0", 9000),
        ("-1", 9000),
        ("70000", 9000),
        ("65535", 65535),
    ],
)
def test_parse_port_falls_back_silently(value, expected) -> None:
    assert parse_port(value) == expected


def test_normalize_username() -> None:
    assert normalize_username("  alice ") == "alice"
    assert normalize_username("Alice Smith") == "Alice Smith"
    assert normalize_username("   ") is None
    assert normalize_username("") is None
    assert normalize_username("a\rb") is None
    assert normalize_username(None) is None


def test_sanitize_line() -> None:
    assert sanitize_line("plain") == "plain"
    assert sanitize_line("a\r\nb\nc\rd") == "a b c d"


def test_build_config_defaults() -> None:
    cfg = build_config([], environ={})
    assert cfg.port == 9000
    assert cfg.host == "0.0.0.0"
    assert cfg.max_handshake_attempts == 3


def test_build_config_port_argument() -> None:
    assert build_config(["9100"], environ={}).port == 9100
    assert build_config(["not-a-port"], environ={}).port == 9000


def test_environment_overrides() -> None:
    cfg = apply_environment(
        RelayRuntimeConfig(),
        {
            "CHATRELAY_HOST": " 127.0.0.1 ",
            "CHATRELAY_LOG_LEVEL": "debug",
            "CHATRELAY_LOG_FILE": "/tmp/relay.log",
        },
    )
    assert cfg.host == "127.0.0.1"
    assert cfg.log_level == "debug"
    assert cfg.log_file == "/tmp/relay.log"


def test_environment_blank_values() -> None:
    base = RelayRuntimeConfig(log_file="/var/log/relay.log")
    cfg = apply_environment(base, {"CHATRELAY_HOST": "  ", "CHATRELAY_LOG_FILE": ""})
    assert cfg.host == base.host
    assert cfg.log_file is None
    assert apply_environment(base, {}) is base


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("debug", logging.DEBUG),
        ("WARN", logging.WARNING),
        (" error ", logging.ERROR),
        ("15", 15),
        (logging.INFO, logging.INFO),
        ("", logging.INFO),
        (None, logging.INFO),
        ("chatty", logging.INFO),
    ],
)
def test_parse_level(value, expected) -> None:
    assert parse_level(value, logging.INFO) == expected


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.setLevel(level)
    logging.captureWarnings(False)


def test_configure_logging_is_repeatable(restore_root_logger) -> None:
    cfg = RelayRuntimeConfig(log_level="DEBUG")
    configure_logging(cfg)
    configure_logging(cfg)

    assert len(restore_root_logger.handlers) == 1
    assert restore_root_logger.level == logging.DEBUG


def test_configure_logging_writes_file(tmp_path, restore_root_logger) -> None:
    log_file = tmp_path / "logs" / "relay.log"
    cfg = RelayRuntimeConfig(log_console=False, log_file=str(log_file))
    configure_logging(cfg)

    logging.getLogger("chatrelay.relay").info("hello from the relay")
    for h in restore_root_logger.handlers:
        h.flush()

    assert len(restore_root_logger.handlers) == 1
    assert "hello from the relay" in log_file.read_text(encoding="utf-8")
