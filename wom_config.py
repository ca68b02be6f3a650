"""
WOM Generator Configuration
===========================

Settings come from the environment, optionally seeded from a ``.env`` file
in the working directory.  One configuration drives every deployment; the
registry host and generation count are plain settings.
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from womcrypt import WomError
from wom_payloads import VoucherInfo
from wom_protocol import BatchErrorPolicy
from wom_render import DEFAULT_REDEEM_URL

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class ConfigError(WomError):
    """A setting is present but unusable."""


@dataclass(frozen=True)
class Settings:
    base_url: str = "http://wom.social"
    generations: int = 200
    source_id: int = 2
    source_password: Optional[str] = None
    voucher_aim: str = "H"
    voucher_latitude: float = 43.676943
    voucher_longitude: float = 12.6452312
    voucher_timestamp: datetime = datetime(2019, 8, 7, 21, 0, 0)
    voucher_count: int = 60
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    on_error: BatchErrorPolicy = BatchErrorPolicy.ABORT
    output_dir: str = "."
    redeem_url: str = DEFAULT_REDEEM_URL
    log_level: str = "INFO"

    @property
    def timeout(self) -> Tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)

    def voucher_info(self) -> VoucherInfo:
        return VoucherInfo(
            aim=self.voucher_aim,
            latitude=self.voucher_latitude,
            longitude=self.voucher_longitude,
            timestamp=self.voucher_timestamp,
            count=self.voucher_count,
        )


def _get(env: Mapping[str, str], name: str, convert, default):
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return convert(raw.strip())
    except ValueError as exc:
        raise ConfigError(f"{name}={raw!r} is invalid: {exc}") from exc


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build :class:`Settings` from *environ* (default ``os.environ``)."""
    env = os.environ if environ is None else environ
    d = Settings()
    settings = Settings(
        base_url=_get(env, "WOM_BASE_URL", str, d.base_url),
        generations=_get(env, "WOM_GENERATIONS", int, d.generations),
        source_id=_get(env, "WOM_SOURCE_ID", int, d.source_id),
        source_password=_get(env, "WOM_SOURCE_PASSWORD", str, d.source_password),
        voucher_aim=_get(env, "WOM_VOUCHER_AIM", str, d.voucher_aim),
        voucher_latitude=_get(env, "WOM_VOUCHER_LATITUDE", float, d.voucher_latitude),
        voucher_longitude=_get(env, "WOM_VOUCHER_LONGITUDE", float, d.voucher_longitude),
        voucher_timestamp=_get(
            env, "WOM_VOUCHER_TIMESTAMP", datetime.fromisoformat, d.voucher_timestamp
        ),
        voucher_count=_get(env, "WOM_VOUCHER_COUNT", int, d.voucher_count),
        connect_timeout=_get(env, "WOM_CONNECT_TIMEOUT", float, d.connect_timeout),
        read_timeout=_get(env, "WOM_READ_TIMEOUT", float, d.read_timeout),
        on_error=_get(env, "WOM_ON_ERROR", lambda v: BatchErrorPolicy(v.lower()), d.on_error),
        output_dir=_get(env, "WOM_OUTPUT_DIR", str, d.output_dir),
        redeem_url=_get(env, "WOM_REDEEM_URL", str, d.redeem_url),
        log_level=_get(env, "LOG_LEVEL", str.upper, d.log_level),
    )
    if settings.generations < 0:
        raise ConfigError("WOM_GENERATIONS must not be negative.")
    if settings.connect_timeout <= 0 or settings.read_timeout <= 0:
        raise ConfigError("Timeouts must be positive.")
    return settings


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the command-line tool."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
