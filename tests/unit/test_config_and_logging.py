"""Unit tests for settings validation and logging setup."""

import json
import logging

import pytest
from pydantic import ValidationError

from rallyelo.config import Settings
from rallyelo.logging_config import JsonFormatter, setup_logging
from rallyelo.sports.seed import DEFAULT_SPORTS, seed_sports


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


def test_settings_defaults():
    settings = Settings(_env_file=None)
    assert settings.default_elo == 1000
    assert settings.default_k_factor == 32
    assert settings.log_format == "json"


def test_settings_normalize_log_options():
    settings = Settings(_env_file=None, log_level="debug", log_format="CONSOLE")
    assert settings.log_level == "DEBUG"
    assert settings.log_format == "console"


@pytest.mark.parametrize(
    "overrides",
    [{"log_level": "LOUD"}, {"log_format": "xml"}, {"default_k_factor": 0}],
)
def test_settings_reject_bad_values(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_json_formatter():
    record = logging.LogRecord("rallyelo.test", logging.INFO, __file__, 1, "match %d confirmed", (7,), None)
    payload = json.loads(JsonFormatter().format(record))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "rallyelo.test"
    assert payload["message"] == "match 7 confirmed"


def test_setup_logging_replaces_handlers(restore_root_logger):
    setup_logging(level="warning", fmt="console")
    setup_logging(level="info", fmt="json")

    root = restore_root_logger
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, JsonFormatter)
    assert root.level == logging.INFO
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING


def test_seed_sports_is_idempotent(db_session):
    assert seed_sports(db_session) == [s["id"] for s in DEFAULT_SPORTS]
    db_session.commit()
    assert seed_sports(db_session) == []
