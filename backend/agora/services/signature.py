"""
Starknet wallet signature verification.

Wallets sign the login nonce with the Stark-friendly curve used by Starknet
accounts. The wallet address submitted by the client is the signer's public
key, i.e. the x coordinate of the public point.

Verification flow:
1. The wire signature (compact hex or an ``[r, s]`` pair) is parsed once into
   a ``StarkSignature`` -> parse_signature()
2. The challenge is hashed with starknet_keccak() (Keccak-256 truncated to
   250 bits, the hash Starknet uses for selectors and messages)
3. The ECDSA equation is checked against both curve points sharing the
   public key's x coordinate -> verify_signature()

Curve arithmetic is delegated to the ``ecdsa`` package with the Stark curve
parameters; Keccak comes from ``pycryptodome``.
"""
from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final, Union

from Crypto.Hash import keccak
from ecdsa import ellipticcurve, numbertheory
from ecdsa.ecdsa import Public_key, Signature

from agora.core.exceptions import MalformedSignature

FIELD_PRIME: Final = 0x800000000000011000000000000000000000000000000000000000000000001
ALPHA: Final = 1
BETA: Final = 0x06F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89
EC_ORDER: Final = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F
GENERATOR_X: Final = 0x1EF15C18599971B7BECED415A40F0C7DEACFD9B0D1819E03D723D8BC943CFCA
GENERATOR_Y: Final = 0x5668060AA49730B7BE4801DF46EC62DE53ECD11ABE43A32873000C36E8DC1F

# r, s^-1 and message hashes must fit in 251 bits.
MAX_ECDSA_VALUE: Final = 2**251
MASK_250: Final = 2**250 - 1

STARK_CURVE: Final = ellipticcurve.CurveFp(FIELD_PRIME, ALPHA, BETA)
GENERATOR: Final = ellipticcurve.PointJacobi(
    STARK_CURVE, GENERATOR_X, GENERATOR_Y, 1, EC_ORDER, generator=True
)

_HEX_RE: Final = re.compile(r"^(0x)?[0-9a-fA-F]+$")
_COMPACT_HEX_LENGTH: Final = 128

WireSignature = Union[str, Sequence[str]]


@dataclass(frozen=True, slots=True)
class StarkSignature:
    """Canonical ``(r, s)`` form of a Stark ECDSA signature."""

    r: int
    s: int


def _parse_hex(value: object, field: str) -> int:
    if not isinstance(value, str) or not _HEX_RE.match(value.strip()):
        raise MalformedSignature(f"{field} must be a hex string")
    return int(value.strip(), 16)


def parse_signature(raw: WireSignature | StarkSignature) -> StarkSignature:
    """Resolve either wire encoding into a ``StarkSignature``.

    Accepts a compact ``r || s`` hex string (64 bytes, optional ``0x``) or a
    two element sequence of hex strings.
    """

    if isinstance(raw, StarkSignature):
        return raw
    if isinstance(raw, str):
        body = raw.strip()
        if body[:2].lower() == "0x":
            body = body[2:]
        if len(body) != _COMPACT_HEX_LENGTH or not _HEX_RE.match(body):
            raise MalformedSignature("Compact signature must be 64 bytes of hex")
        half = _COMPACT_HEX_LENGTH // 2
        return StarkSignature(r=int(body[:half], 16), s=int(body[half:], 16))
    if isinstance(raw, Sequence) and len(raw) == 2:
        return StarkSignature(r=_parse_hex(raw[0], "r"), s=_parse_hex(raw[1], "s"))
    raise MalformedSignature("Signature must be a hex string or an [r, s] pair")


def starknet_keccak(data: bytes) -> int:
    """Keccak-256 of ``data`` truncated to its low 250 bits."""

    digest = keccak.new(digest_bits=256, data=data).digest()
    return int.from_bytes(digest, "big") & MASK_250


def challenge_hash(challenge: str) -> int:
    return starknet_keccak(challenge.encode("utf-8"))


def _public_points(public_key: int) -> list[ellipticcurve.PointJacobi]:
    if not 0 < public_key < FIELD_PRIME:
        raise MalformedSignature("Public key out of range")
    rhs = (pow(public_key, 3, FIELD_PRIME) + ALPHA * public_key + BETA) % FIELD_PRIME
    try:
        y = numbertheory.square_root_mod_prime(rhs, FIELD_PRIME)
    except numbertheory.Error as exc:
        raise MalformedSignature("Public key is not on the Stark curve") from exc
    return [
        ellipticcurve.PointJacobi(STARK_CURVE, public_key, y, 1, EC_ORDER),
        ellipticcurve.PointJacobi(STARK_CURVE, public_key, (-y) % FIELD_PRIME, 1, EC_ORDER),
    ]


def _in_signature_range(signature: StarkSignature) -> bool:
    if not 1 <= signature.r < MAX_ECDSA_VALUE:
        return False
    if not 1 <= signature.s < EC_ORDER:
        return False
    w = numbertheory.inverse_mod(signature.s, EC_ORDER)
    return 1 <= w < MAX_ECDSA_VALUE


def verify_signature(
    challenge: str,
    signature: WireSignature | StarkSignature,
    address: str,
) -> bool:
    """
    Verify that ``challenge`` was signed by the key behind ``address``.

    Args:
        challenge: The nonce string that was signed
        signature: Compact hex, ``[r, s]`` pair, or an already parsed signature
        address: Hex encoded Stark public key of the wallet

    Returns:
        True if the signature is valid. Malformed input of any kind yields
        False rather than an exception.
    """

    try:
        parsed = parse_signature(signature)
        points = _public_points(_parse_hex(address, "address"))
    except MalformedSignature:
        return False

    if not _in_signature_range(parsed):
        return False

    msg_hash = challenge_hash(challenge)
    ecdsa_signature = Signature(parsed.r, parsed.s)
    return any(
        Public_key(GENERATOR, point, verify=False).verifies(msg_hash, ecdsa_signature)
        for point in points
    )


__all__ = [
    "EC_ORDER",
    "GENERATOR",
    "StarkSignature",
    "WireSignature",
    "challenge_hash",
    "parse_signature",
    "starknet_keccak",
    "verify_signature",
]
