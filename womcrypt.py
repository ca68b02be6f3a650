"""
WOM Payload Crypto Engine
=========================

Chunked RSA encryption for the encrypted payloads exchanged with a WOM
registry:

- RSA with PKCS#1 v1.5 padding, one cipher block per ``K - 11`` plaintext bytes
- Canonical UTF-8 JSON serialization of structured payloads
- Standard base64 text encoding for transport
- PEM key loading (PKCS#1 or PKCS#8 / SubjectPublicKeyInfo)

Uses the ``cryptography`` library for keys and encryption, and
``pycryptodome`` for PKCS#1 v1.5 unpadding with explicit padding checks.

Envelope format
---------------
::

    K = modulus size of the recipient key in bytes (256 for RSA-2048)

    [PLAINTEXT]
      UTF-8 canonical JSON, split into ceil(len / (K - 11)) chunks,
      each chunk K - 11 bytes except the last

    [CIPHERTEXT]
      block 0 : K bytes   RSA(PKCS#1 v1.5 pad(chunk 0))
      block 1 : K bytes   RSA(PKCS#1 v1.5 pad(chunk 1))
      ...

    [ENVELOPE]
      base64(ciphertext), standard alphabet, padded, no line breaks

An empty plaintext yields an empty ciphertext and an empty envelope.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from pathlib import Path
from typing import (
    Any,
    Dict,
    Optional,
    Protocol,
    Type,
    TypeVar,
    Union,
    runtime_checkable,
)

from Crypto.Cipher import PKCS1_v1_5 as PKCS1_v1_5_Cipher
from Crypto.PublicKey import RSA
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

PKCS1_V15_OVERHEAD: int = 11  # 0x00 0x02 | >= 8 random non-zero bytes | 0x00
TEXT_ENCODING: str = "utf-8"

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class WomError(Exception):
    """Base exception for all voucher generator errors."""


class KeyRoleMismatch(WomError):
    """A private key was given where a public key is required, or vice versa."""


class MalformedCiphertext(WomError):
    """Ciphertext is not valid base64 or not aligned to the cipher block size."""


class DecryptionError(WomError):
    """Wrong key, corrupted ciphertext, or invalid padding."""


class SerializationError(WomError):
    """Payload cannot be serialized, or decrypted bytes are not the expected JSON."""


class InvalidKeyError(WomError):
    """PEM content is unreadable or does not hold an RSA key."""


# ---------------------------------------------------------------------------
# Serializable payloads
# ---------------------------------------------------------------------------


@runtime_checkable
class Serializable(Protocol):
    """A payload that converts itself to and from a JSON-ready dict."""

    def to_dict(self) -> Dict[str, Any]:
        ...

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Serializable":
        ...


# ---------------------------------------------------------------------------
# Key material
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyPair:
    """Own private key plus the counterparty's public key.

    Loaded once per process and passed to every call that needs it.
    """

    private_key: RSAPrivateKey
    public_key: RSAPublicKey


@dataclass(frozen=True)
class BlockParameters:
    """Cipher block sizes derived from an RSA modulus."""

    modulus_bytes: int

    @property
    def input_block_size(self) -> int:
        """Maximum plaintext bytes per encrypted block."""
        return self.modulus_bytes - PKCS1_V15_OVERHEAD

    @property
    def output_block_size(self) -> int:
        """Bytes per encrypted block."""
        return self.modulus_bytes


def _require_public(key: Any) -> RSAPublicKey:
    if not isinstance(key, RSAPublicKey):
        raise KeyRoleMismatch("Public key of receiver required for encryption.")
    return key


def _require_private(key: Any) -> RSAPrivateKey:
    if not isinstance(key, RSAPrivateKey):
        raise KeyRoleMismatch("Private key of receiver required for decryption.")
    return key


# Returned by pycryptodome's PKCS#1 v1.5 decrypt when the padding is invalid.
_PADDING_SENTINEL = None


def _to_pycryptodome(key: RSAPrivateKey) -> RSA.RsaKey:
    """Same private key as a pycryptodome ``RsaKey``."""
    nums = key.private_numbers()
    pub = nums.public_numbers
    return RSA.construct((pub.n, pub.e, nums.d, nums.p, nums.q))


# ---------------------------------------------------------------------------
# BlockCipherEngine
# ---------------------------------------------------------------------------


class BlockCipherEngine:
    """
    Raw chunked RSA / PKCS#1 v1.5 encryption over byte buffers.

    All public methods are **static**; the class serves as a logical
    namespace in the same way as :class:`PayloadCodec`.
    """

    @staticmethod
    def block_parameters(key: Union[RSAPublicKey, RSAPrivateKey]) -> BlockParameters:
        """Return the block sizes for *key*'s modulus."""
        return BlockParameters(modulus_bytes=(key.key_size + 7) // 8)

    @staticmethod
    def encrypt_blocks(plaintext: bytes, public_key: RSAPublicKey) -> bytes:
        """
        Encrypt *plaintext* block by block with *public_key*.

        Every plaintext chunk of at most ``input_block_size`` bytes becomes
        exactly ``output_block_size`` bytes of ciphertext, so the result is
        ``ceil(len(plaintext) / input_block_size) * output_block_size`` bytes.

        Raises
        ------
        KeyRoleMismatch
            If *public_key* is not an RSA public key.
        """
        key = _require_public(public_key)
        params = BlockCipherEngine.block_parameters(key)
        in_size = params.input_block_size
        out_size = params.output_block_size

        blocks = -(-len(plaintext) // in_size)
        output = bytearray(blocks * out_size)
        pad = asym_padding.PKCS1v15()
        for i in range(blocks):
            offset = i * in_size
            chunk = plaintext[offset : min(len(plaintext), offset + in_size)]
            crypto_block = key.encrypt(bytes(chunk), pad)
            output[i * out_size : (i + 1) * out_size] = crypto_block
        return bytes(output)

    @staticmethod
    def decrypt_blocks(ciphertext: bytes, private_key: RSAPrivateKey) -> bytes:
        """
        Decrypt *ciphertext* produced by :meth:`encrypt_blocks`.

        Decrypted chunks vary in length, so each one is packed directly
        after the previous one and the buffer is trimmed to the total.

        Raises
        ------
        KeyRoleMismatch
            If *private_key* is not an RSA private key.
        MalformedCiphertext
            If the length is not a multiple of the output block size.
        DecryptionError
            If a block fails to unpad (wrong key or corrupted data).
        """
        key = _require_private(private_key)
        params = BlockCipherEngine.block_parameters(key)
        out_size = params.output_block_size

        if len(ciphertext) % out_size != 0:
            raise MalformedCiphertext(
                f"Ciphertext length {len(ciphertext)} is not a multiple of "
                f"the {out_size}-byte block size."
            )

        blocks = len(ciphertext) // out_size
        output = bytearray(blocks * params.input_block_size)
        output_length = 0
        # Bad padding must raise. OpenSSL may apply implicit rejection and
        # return random bytes instead, so unpadding goes through pycryptodome.
        cipher = PKCS1_v1_5_Cipher.new(_to_pycryptodome(key))
        for i in range(blocks):
            offset = i * out_size
            try:
                chunk = cipher.decrypt(
                    bytes(ciphertext[offset : offset + out_size]), _PADDING_SENTINEL
                )
            except ValueError as exc:
                raise DecryptionError(
                    f"Decryption failed on block {i}: ciphertext out of range."
                ) from exc
            if chunk is _PADDING_SENTINEL:
                raise DecryptionError(
                    f"Decryption failed on block {i}: wrong key or corrupted data."
                )
            output[output_length : output_length + len(chunk)] = chunk
            output_length += len(chunk)

        del output[output_length:]
        return bytes(output)


# ---------------------------------------------------------------------------
# PayloadCodec
# ---------------------------------------------------------------------------


class PayloadCodec:
    """
    serialize -> encrypt -> base64, and the inverse.

    Payloads are either :class:`Serializable` objects or plain
    JSON-representable values.
    """

    # ------------------------------------------------------------------
    # Base64
    # ------------------------------------------------------------------

    @staticmethod
    def encode_base64(data: bytes) -> str:
        """Standard-alphabet, padded base64 without line breaks."""
        return base64.b64encode(data).decode("ascii")

    @staticmethod
    def decode_base64(text: str) -> bytes:
        """Strict inverse of :meth:`encode_base64`."""
        try:
            return base64.b64decode(text, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedCiphertext("Envelope is not valid base64.") from exc

    # ------------------------------------------------------------------
    # Canonical JSON
    # ------------------------------------------------------------------

    @staticmethod
    def serialize(payload: Any) -> bytes:
        """Canonical UTF-8 JSON bytes for *payload*."""
        obj = payload.to_dict() if isinstance(payload, Serializable) else payload
        try:
            text = json.dumps(
                obj,
                separators=(",", ":"),
                sort_keys=True,
                ensure_ascii=False,
                allow_nan=False,
            )
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Payload is not JSON-serializable: {exc}") from exc
        return text.encode(TEXT_ENCODING)

    @staticmethod
    def deserialize(data: bytes, payload_type: Optional[Type[T]] = None) -> Any:
        """
        Parse canonical JSON *data*.

        With a *payload_type*, the parsed object is handed to its
        ``from_dict``; otherwise the plain JSON value is returned.
        """
        try:
            obj = json.loads(data.decode(TEXT_ENCODING))
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializationError("Decrypted payload is not valid UTF-8 JSON.") from exc

        if payload_type is None:
            return obj
        if not isinstance(obj, dict):
            raise SerializationError(
                f"Expected a JSON object for {payload_type.__name__}, "
                f"got {type(obj).__name__}."
            )
        try:
            return payload_type.from_dict(obj)  # type: ignore[attr-defined]
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise SerializationError(
                f"Payload does not match {payload_type.__name__}: {exc!r}"
            ) from exc

    # ------------------------------------------------------------------
    # Envelope encode / decode
    # ------------------------------------------------------------------

    @staticmethod
    def encode(payload: Any, recipient_public_key: RSAPublicKey) -> str:
        """
        Encrypt *payload* for the holder of *recipient_public_key*.

        PKCS#1 v1.5 padding is randomized, so encoding the same payload
        twice gives different envelopes.
        """
        _require_public(recipient_public_key)
        plaintext = PayloadCodec.serialize(payload)
        ciphertext = BlockCipherEngine.encrypt_blocks(plaintext, recipient_public_key)
        return PayloadCodec.encode_base64(ciphertext)

    @staticmethod
    def decode(
        envelope: str,
        recipient_private_key: RSAPrivateKey,
        payload_type: Optional[Type[T]] = None,
    ) -> Any:
        """
        Decrypt an envelope produced by :meth:`encode`.

        Raises
        ------
        KeyRoleMismatch
            If *recipient_private_key* is not an RSA private key.
        MalformedCiphertext
            If the envelope is not base64 or not block-aligned.
        DecryptionError
            If any block fails to decrypt.
        SerializationError
            If the plaintext is not JSON of the expected shape.
        """
        _require_private(recipient_private_key)
        ciphertext = PayloadCodec.decode_base64(envelope)
        plaintext = BlockCipherEngine.decrypt_blocks(ciphertext, recipient_private_key)
        return PayloadCodec.deserialize(plaintext, payload_type)


# ---------------------------------------------------------------------------
# PEM key loading
# ---------------------------------------------------------------------------


def load_private_key(
    path: Union[str, Path],
    passphrase: Optional[str] = None,
) -> RSAPrivateKey:
    """Load an RSA private key (PKCS#1 or PKCS#8 PEM, optionally encrypted)."""
    pem = Path(path).read_bytes()
    pwd = passphrase.encode("utf-8") if passphrase else None
    try:
        key = serialization.load_pem_private_key(pem, password=pwd)
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"Cannot read private key from {path}: {exc}") from exc
    if not isinstance(key, RSAPrivateKey):
        raise InvalidKeyError(f"{path} does not contain an RSA private key.")
    return key


def load_public_key(path: Union[str, Path]) -> RSAPublicKey:
    """Load an RSA public key (SubjectPublicKeyInfo or PKCS#1 PEM)."""
    pem = Path(path).read_bytes()
    try:
        key = serialization.load_pem_public_key(pem)
    except (ValueError, TypeError) as exc:
        raise InvalidKeyError(f"Cannot read public key from {path}: {exc}") from exc
    if not isinstance(key, RSAPublicKey):
        raise InvalidKeyError(f"{path} does not contain an RSA public key.")
    return key


def load_key_pair(
    private_path: Union[str, Path],
    public_path: Union[str, Path],
    passphrase: Optional[str] = None,
) -> KeyPair:
    """Load own private key and the counterparty's public key."""
    return KeyPair(
        private_key=load_private_key(private_path, passphrase),
        public_key=load_public_key(public_path),
    )


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

_engine = BlockCipherEngine
_codec = PayloadCodec

block_parameters = _engine.block_parameters
encrypt_blocks = _engine.encrypt_blocks
decrypt_blocks = _engine.decrypt_blocks

encode_base64 = _codec.encode_base64
decode_base64 = _codec.decode_base64
serialize = _codec.serialize
deserialize = _codec.deserialize
encode = _codec.encode
decode = _codec.decode
