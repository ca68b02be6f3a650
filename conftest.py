"""Shared fixtures: RSA keys and an in-process fake registry."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

import womcrypt
from womcrypt import KeyPair
from wom_payloads import (
    VoucherCreateContent,
    VoucherCreateResponseContent,
    VoucherInfo,
    VoucherVerifyContent,
)
from wom_transport import CREATE_PATH, VERIFY_PATH, TransportError


def _rsa_2048():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def source_private_key():
    return _rsa_2048()


@pytest.fixture(scope="session")
def registry_private_key():
    return _rsa_2048()


@pytest.fixture(scope="session")
def stranger_private_key():
    """A valid 2048-bit key that matches neither party."""
    return _rsa_2048()


@pytest.fixture(scope="session")
def source_keys(source_private_key, registry_private_key) -> KeyPair:
    return KeyPair(
        private_key=source_private_key,
        public_key=registry_private_key.public_key(),
    )


@pytest.fixture
def voucher_info() -> VoucherInfo:
    return VoucherInfo(
        aim="H",
        latitude=43.676943,
        longitude=12.6452312,
        timestamp=datetime(2019, 8, 7, 19, 0, 0, tzinfo=timezone.utc),
        count=60,
    )


class FakeRegistry:
    """
    Plays the registry side of the protocol in memory.

    Decrypts create requests with the registry key, answers with an otc
    encrypted for the source, and accepts verification of issued otcs.
    """

    def __init__(self, registry_private_key, source_public_key):
        self.registry_private_key = registry_private_key
        self.source_public_key = source_public_key
        self.calls = []
        self.created = {}
        self.verified = []
        self.create_attempts = 0
        self.fail_create_on = set()
        self.fail_verify_status = None
        self.create_response = None
        self.closed = False

    def post_json(self, path, body, *, expect_body=True):
        self.calls.append((path, body))
        if path == CREATE_PATH:
            return self._create(body)
        if path == VERIFY_PATH:
            return self._verify(body)
        raise TransportError(f"no route {path}", status_code=404, url=path)

    def _create(self, body):
        self.create_attempts += 1
        if self.create_attempts in self.fail_create_on:
            raise TransportError("HTTP 500", status_code=500, url=CREATE_PATH)
        if self.create_response is not None:
            return self.create_response
        content = womcrypt.decode(
            body["payload"], self.registry_private_key, VoucherCreateContent
        )
        assert content.nonce == body["nonce"]
        assert content.source_id == body["sourceId"]
        otc = uuid.uuid4()
        self.created[otc] = content
        reply = VoucherCreateResponseContent(otc=otc, password=f"pw-{len(self.created)}")
        return {"payload": womcrypt.encode(reply, self.source_public_key)}

    def _verify(self, body):
        if self.fail_verify_status is not None:
            raise TransportError(
                f"HTTP {self.fail_verify_status}",
                status_code=self.fail_verify_status,
                url=VERIFY_PATH,
            )
        content = womcrypt.decode(
            body["payload"], self.registry_private_key, VoucherVerifyContent
        )
        if content.otc not in self.created:
            raise TransportError("HTTP 404", status_code=404, url=VERIFY_PATH)
        self.verified.append(content.otc)
        return None

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


@pytest.fixture
def registry(registry_private_key, source_private_key) -> FakeRegistry:
    return FakeRegistry(registry_private_key, source_private_key.public_key())
