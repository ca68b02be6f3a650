"""
WOM Voucher Protocol
====================

Two-step voucher generation against a registry:

  1. create  - send the encrypted voucher request, receive an encrypted
               one-time code (otc) and password
  2. verify  - confirm the otc so the registry activates the vouchers

Per generation::

    IDLE -> CREATING -> CREATED -> VERIFYING -> VERIFIED
                 \\                      \\
                  +-> FAILED              +-> FAILED

No step is retried.  A batch of generations runs sequentially and the
caller chooses whether one failure aborts the batch.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import womcrypt
from womcrypt import KeyPair, SerializationError, WomError
from wom_payloads import (
    VoucherCreateContent,
    VoucherCreateRequest,
    VoucherCreateResponse,
    VoucherCreateResponseContent,
    VoucherInfo,
    VoucherVerifyContent,
    VoucherVerifyRequest,
)
from wom_transport import CREATE_PATH, VERIFY_PATH

logger = logging.getLogger(__name__)


class ProtocolStateError(WomError):
    """A protocol step was attempted out of order."""


class GenerationState(enum.Enum):
    """Where one generation is in the create/verify sequence."""
    IDLE = "idle"
    CREATING = "creating"
    CREATED = "created"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"


class BatchErrorPolicy(str, enum.Enum):
    """What a batch does when one generation fails."""
    ABORT = "abort"
    CONTINUE = "continue"


def new_nonce() -> str:
    """32 lowercase hex characters, fresh for every create request."""
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# VoucherProtocol
# ---------------------------------------------------------------------------

class VoucherProtocol:
    """
    Everything a generation needs: keys, transport and the request template.

    Parameters
    ----------
    keys : KeyPair
        Own private key (decrypts responses) and the registry's public key
        (encrypts requests).
    transport
        Object with ``post_json(path, body, *, expect_body=True)``, usually
        a :class:`wom_transport.Transport`.
    source_id : int
        Registry id of the voucher source.
    vouchers : sequence of VoucherInfo
        Vouchers requested by every generation.
    password : str, optional
        Password sent with each create request.
    """

    def __init__(
        self,
        keys: KeyPair,
        transport,
        source_id: int,
        vouchers: Sequence[VoucherInfo],
        password: Optional[str] = None,
        nonce_factory: Callable[[], str] = new_nonce,
    ):
        self.keys = keys
        self.transport = transport
        self.source_id = source_id
        self.vouchers = list(vouchers)
        self.password = password
        self.nonce_factory = nonce_factory

    def new_generation(self, index: int = 1) -> "VoucherGeneration":
        return VoucherGeneration(self, index)

    def generate(self, index: int = 1) -> "VoucherGeneration":
        """Run create then verify; returns the verified generation."""
        generation = self.new_generation(index)
        generation.run()
        return generation


class VoucherGeneration:
    """State of one create/verify run."""

    def __init__(self, protocol: VoucherProtocol, index: int):
        self._protocol = protocol
        self.index = index
        self.state = GenerationState.IDLE
        self.nonce: Optional[str] = None
        self.otc: Optional[uuid.UUID] = None
        self.password: Optional[str] = None
        self.error: Optional[BaseException] = None

    def __repr__(self) -> str:
        return (
            f"VoucherGeneration(index={self.index}, state={self.state.name}, "
            f"otc={self.otc})"
        )

    def _enter(self, expected: GenerationState, running: GenerationState) -> None:
        if self.state is not expected:
            raise ProtocolStateError(
                f"Cannot move to {running.name} from {self.state.name} "
                f"(generation {self.index})."
            )
        self.state = running

    def _fail(self, exc: BaseException) -> None:
        self.state = GenerationState.FAILED
        self.error = exc
        logger.error(
            "Voucher generation %d failed: %s: %s",
            self.index, type(exc).__name__, exc,
        )

    # ----- step 1 -----

    def create(self) -> None:
        """Request a new voucher generation from the registry."""
        self._enter(GenerationState.IDLE, GenerationState.CREATING)
        p = self._protocol
        try:
            self.nonce = p.nonce_factory()
            content = VoucherCreateContent(
                source_id=p.source_id,
                nonce=self.nonce,
                vouchers=p.vouchers,
                password=p.password,
            )
            request = VoucherCreateRequest(
                source_id=p.source_id,
                nonce=self.nonce,
                payload=womcrypt.encode(content, p.keys.public_key),
            )
            body = p.transport.post_json(CREATE_PATH, request.to_dict())
            if not isinstance(body, dict) or "payload" not in body:
                raise SerializationError("Create response carries no payload.")
            response = VoucherCreateResponse.from_dict(body)
            result = womcrypt.decode(
                response.payload,
                p.keys.private_key,
                VoucherCreateResponseContent,
            )
        except BaseException as exc:
            self._fail(exc)
            raise
        self.otc = result.otc
        self.password = result.password
        self.state = GenerationState.CREATED

    # ----- step 2 -----

    def verify(self) -> None:
        """Confirm the one-time code; only valid after :meth:`create`."""
        self._enter(GenerationState.CREATED, GenerationState.VERIFYING)
        p = self._protocol
        try:
            request = VoucherVerifyRequest(
                payload=womcrypt.encode(
                    VoucherVerifyContent(otc=self.otc), p.keys.public_key
                ),
            )
            p.transport.post_json(VERIFY_PATH, request.to_dict(), expect_body=False)
        except BaseException as exc:
            self._fail(exc)
            raise
        self.state = GenerationState.VERIFIED

    def run(self) -> None:
        """Both steps in order."""
        self.create()
        logger.info("Voucher generation %d: %s", self.index, self.otc)
        logger.info("Password: %s", self.password)
        self.verify()


# ---------------------------------------------------------------------------
# Batches
# ---------------------------------------------------------------------------

@dataclass
class BatchResult:
    """
    Outcome of :func:`run_batch`.

    ``callback_failed`` holds generations that were verified by the
    registry but whose *on_generated* callback raised; they are also in
    ``succeeded``.
    """
    succeeded: List[VoucherGeneration] = field(default_factory=list)
    failed: List[VoucherGeneration] = field(default_factory=list)
    callback_failed: List[VoucherGeneration] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.callback_failed


def run_batch(
    protocol: VoucherProtocol,
    count: int,
    *,
    on_error: BatchErrorPolicy = BatchErrorPolicy.ABORT,
    on_generated: Optional[Callable[[VoucherGeneration], None]] = None,
) -> BatchResult:
    """
    Run *count* independent generations, numbered from 1.

    *on_generated* is called with every verified generation.  *on_error*
    applies to both protocol failures and callback failures: with
    ``BatchErrorPolicy.ABORT`` the first one propagates, with
    ``BatchErrorPolicy.CONTINUE`` it is recorded in the result and the loop
    moves on.
    """
    result = BatchResult()
    for index in range(1, count + 1):
        generation = protocol.new_generation(index)
        try:
            generation.run()
        except Exception:
            result.failed.append(generation)
            if on_error is BatchErrorPolicy.ABORT:
                raise
            continue
        result.succeeded.append(generation)
        if on_generated is None:
            continue
        try:
            on_generated(generation)
        except Exception as exc:
            generation.error = exc
            result.callback_failed.append(generation)
            logger.error(
                "Handling verified generation %d (%s) failed: %s: %s",
                index, generation.otc, type(exc).__name__, exc,
            )
            if on_error is BatchErrorPolicy.ABORT:
                raise
    return result
