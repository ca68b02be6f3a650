"""Tests for environment-driven settings."""

from __future__ import annotations

from datetime import datetime

import pytest

from wom_config import ConfigError, Settings, load_settings
from wom_protocol import BatchErrorPolicy


def test_defaults_match_the_production_run():
    settings = load_settings({})
    assert settings == Settings()
    assert settings.base_url == "http://wom.social"
    assert settings.generations == 200
    assert settings.source_id == 2
    assert settings.on_error is BatchErrorPolicy.ABORT
    assert settings.timeout == (10.0, 30.0)


def test_overrides():
    settings = load_settings(
        {
            "WOM_BASE_URL": "https://dev.wom.social",
            "WOM_GENERATIONS": "3",
            "WOM_VOUCHER_TIMESTAMP": "2020-01-02T03:04:05+00:00",
            "WOM_ON_ERROR": "Continue",
            "WOM_READ_TIMEOUT": "5",
            "LOG_LEVEL": "debug",
        }
    )
    assert settings.base_url == "https://dev.wom.social"
    assert settings.generations == 3
    assert settings.voucher_timestamp.year == 2020
    assert settings.on_error is BatchErrorPolicy.CONTINUE
    assert settings.timeout == (10.0, 5.0)
    assert settings.log_level == "DEBUG"


def test_blank_values_fall_back_to_defaults():
    assert load_settings({"WOM_GENERATIONS": "  "}).generations == 200


def test_voucher_info_from_settings():
    info = Settings().voucher_info()
    assert info.aim == "H"
    assert info.count == 60
    assert info.timestamp == datetime(2019, 8, 7, 21, 0, 0)


@pytest.mark.parametrize(
    "env",
    [
        {"WOM_GENERATIONS": "many"},
        {"WOM_GENERATIONS": "-1"},
        {"WOM_ON_ERROR": "retry"},
        {"WOM_CONNECT_TIMEOUT": "0"},
        {"WOM_VOUCHER_LATITUDE": "north"},
    ],
)
def test_invalid_settings(env):
    with pytest.raises(ConfigError):
        load_settings(env)
