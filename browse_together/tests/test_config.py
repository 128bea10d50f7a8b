from __future__ import annotations

import logging
from pathlib import Path

import pytest

from browse_together.config import (
    DEFAULT_BROWSER_ARGS,
    ConfigError,
    configure_logging,
    load_config,
    log_active_configuration,
    logging_config,
    parse_cli_arguments,
)

TOKEN = "x" * 40


def _env(**overrides: str) -> dict[str, str]:
    env = {"BROWSER_API_TOKEN": TOKEN}
    env.update(overrides)
    return env


def test_defaults_apply_when_only_token_is_set():
    config = load_config(argv=[], env_vars=_env())

    assert config.app_env == "development"
    assert config.browser_type == "chromium"
    assert config.log_level == "debug"
    assert config.port == 8888
    assert config.headless is False
    assert config.ignore_default_args == ["--enable-automation"]
    assert config.browser_args == DEFAULT_BROWSER_ARGS
    assert config.profile_dir.parts[-2:] == ("playwright", "profile")


def test_environment_values_are_cast():
    config = load_config(
        argv=[],
        env_vars=_env(
            PORT="9000",
            HEADLESS="true",
            BROWSER_TYPE="firefox",
            PROFILE_DIR="/tmp/profile",
            BROWSER_ARGS='["--lang=en"]',
            UNRELATED="ignored",
        ),
    )

    assert config.port == 9000
    assert config.headless is True
    assert config.browser_type == "firefox"
    assert config.profile_dir == Path("/tmp/profile")
    assert config.browser_args == ["--lang=en"]


def test_cli_arguments_take_precedence_over_environment():
    config = load_config(
        argv=["--port", "7000", "-t", "firefox", "--headless", "--log-level", "warn"],
        env_vars=_env(PORT="9000", BROWSER_TYPE="chromium", HEADLESS="false"),
    )

    assert config.port == 7000
    assert config.browser_type == "firefox"
    assert config.headless is True
    assert config.log_level == "warn"


def test_cli_token_overrides_environment_token():
    cli_token = "c" * 32

    config = load_config(argv=["--browser-api-token", cli_token], env_vars=_env())

    assert config.browser_api_token == cli_token


def test_parse_cli_arguments_returns_raw_strings_by_env_key():
    parsed = parse_cli_arguments(["-p", "1234", "--headless", "false", "-i", "[]"])

    assert parsed == {"PORT": "1234", "HEADLESS": "false", "IGNORE_DEFAULT_ARGS": "[]"}


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"BROWSER_API_TOKEN": "short"}, "BROWSER_API_TOKEN"),
        ({"PORT": "70000"}, "PORT"),
        ({"PORT": "eighty"}, "PORT"),
        ({"BROWSER_TYPE": "safari"}, "BROWSER_TYPE"),
        ({"LOG_LEVEL": "verbose"}, "LOG_LEVEL"),
        ({"BROWSER_ARGS": "[not json"}, "Invalid JSON"),
        ({"IGNORE_DEFAULT_ARGS": '{"a": 1}'}, "JSON array"),
    ],
)
def test_invalid_values_raise_config_error(overrides, fragment):
    with pytest.raises(ConfigError) as excinfo:
        load_config(argv=[], env_vars=_env(**overrides))

    assert fragment in str(excinfo.value)


def test_missing_token_is_reported():
    with pytest.raises(ConfigError, match="BROWSER_API_TOKEN"):
        load_config(argv=[], env_vars={})


def test_launch_options_projection():
    config = load_config(argv=[], env_vars=_env(HEADLESS="1", PROFILE_DIR="/srv/profile"))

    options = config.launch_options()

    assert options.headless is True
    assert options.profile_dir == Path("/srv/profile")
    assert options.ignore_default_args == ("--enable-automation",)
    assert options.browser_type == "chromium"


def test_redacted_hides_token():
    config = load_config(argv=[], env_vars=_env())

    redacted = config.redacted()

    assert TOKEN not in str(redacted)
    assert redacted["browser_api_token"].startswith("xxxx")


def test_logging_levels_follow_config():
    warn = load_config(argv=[], env_vars=_env(LOG_LEVEL="warn"))
    quiet = load_config(argv=[], env_vars=_env(APP_ENV="test", LOG_LEVEL="debug"))

    assert logging_config(warn)["root"]["level"] == "WARNING"
    assert logging_config(quiet)["root"]["level"] == "ERROR"


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def test_active_configuration_is_written_with_token_redacted(capsys, restore_root_logger):
    config = load_config(argv=["--log-level", "info", "--port", "9123"], env_vars=_env())

    configure_logging(config)
    log_active_configuration(config)

    output = capsys.readouterr().err
    assert "Active configuration" in output
    assert "'port': 9123" in output
    assert "'browser_api_token': 'xxxx" in output
    assert TOKEN not in output
