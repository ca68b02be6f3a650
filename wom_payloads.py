"""
WOM Registry Payloads
=====================

Wire records for the voucher create / verify exchange.  Outer records
travel as cleartext JSON; inner ``*Content`` records are encrypted into
the outer record's ``payload`` field by :mod:`womcrypt`.

Field names on the wire are camelCase.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


# ---------------------------------------------------------------------------
# Timestamp helpers
# ---------------------------------------------------------------------------

def format_timestamp(value: datetime) -> str:
    """ISO 8601 in UTC with a ``Z`` suffix; naive values are local time."""
    if value.tzinfo is None:
        value = value.astimezone()
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Inverse of :func:`format_timestamp`; naive input is taken as UTC."""
    value = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Voucher creation
# ---------------------------------------------------------------------------

@dataclass
class VoucherInfo:
    """Vouchers of one aim, place and time to generate."""
    aim: str
    latitude: float
    longitude: float
    timestamp: datetime
    count: int = 1

    def to_dict(self) -> dict:
        return {
            "aim": self.aim,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "timestamp": format_timestamp(self.timestamp),
            "count": self.count,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherInfo":
        return cls(
            aim=str(d["aim"]),
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
            timestamp=parse_timestamp(d["timestamp"]),
            count=int(d.get("count", 1)),
        )


@dataclass
class VoucherCreateContent:
    """Inner create payload, encrypted for the registry."""
    source_id: int
    nonce: str
    vouchers: List[VoucherInfo] = field(default_factory=list)
    password: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "sourceId": self.source_id,
            "nonce": self.nonce,
            "password": self.password,
            "vouchers": [v.to_dict() for v in self.vouchers],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherCreateContent":
        return cls(
            source_id=int(d["sourceId"]),
            nonce=str(d["nonce"]),
            vouchers=[VoucherInfo.from_dict(v) for v in d.get("vouchers") or []],
            password=d.get("password"),
        )


@dataclass
class VoucherCreateRequest:
    """Outer create request: cleartext correlation fields + encrypted content."""
    source_id: int
    nonce: str
    payload: str

    def to_dict(self) -> dict:
        return {
            "sourceId": self.source_id,
            "nonce": self.nonce,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherCreateRequest":
        return cls(
            source_id=int(d["sourceId"]),
            nonce=str(d["nonce"]),
            payload=str(d["payload"]),
        )


@dataclass
class VoucherCreateResponse:
    """Outer create response; ``payload`` is encrypted for the source."""
    payload: str

    def to_dict(self) -> dict:
        return {"payload": self.payload}

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherCreateResponse":
        return cls(payload=str(d["payload"]))


@dataclass
class VoucherCreateResponseContent:
    """One-time code and password of a created voucher generation."""
    otc: uuid.UUID
    password: str

    def to_dict(self) -> dict:
        return {"otc": str(self.otc), "password": self.password}

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherCreateResponseContent":
        return cls(otc=uuid.UUID(str(d["otc"])), password=str(d["password"]))


# ---------------------------------------------------------------------------
# Voucher verification
# ---------------------------------------------------------------------------

@dataclass
class VoucherVerifyContent:
    otc: uuid.UUID

    def to_dict(self) -> dict:
        return {"otc": str(self.otc)}

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherVerifyContent":
        return cls(otc=uuid.UUID(str(d["otc"])))


@dataclass
class VoucherVerifyRequest:
    payload: str

    def to_dict(self) -> dict:
        return {"payload": self.payload}

    @classmethod
    def from_dict(cls, d: dict) -> "VoucherVerifyRequest":
        return cls(payload=str(d["payload"]))
