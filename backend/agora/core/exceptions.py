"""Domain errors raised by the wallet authentication core."""
from __future__ import annotations


class WalletAuthError(Exception):
    """Base class for authentication failures surfaced to callers."""

    code = "unauthorized"
    message = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message:
            self.message = message


class NoValidNonce(WalletAuthError):
    """No live nonce exists for the address (expired, never issued, or consumed)."""

    code = "no_valid_nonce"
    message = "No valid nonce for this address. Request a new nonce."


class InvalidSignature(WalletAuthError):
    """The signature does not verify against the issued nonce."""

    code = "invalid_signature"
    message = "Signature verification failed."


class MalformedSignature(InvalidSignature):
    """The signature cannot be decoded into either supported encoding."""

    message = "Signature is malformed."


class TokenRevoked(WalletAuthError):
    """The presented token has been recorded in the revocation ledger."""

    code = "token_revoked"
    message = "Token has been revoked."


class IdentityConflict(WalletAuthError):
    """A concurrent request created the same wallet or username first."""

    code = "identity_conflict"
    message = "Wallet identity is being provisioned concurrently. Retry the request."

    def __init__(self, address: str) -> None:
        super().__init__()
        self.address = address


__all__ = [
    "IdentityConflict",
    "InvalidSignature",
    "MalformedSignature",
    "NoValidNonce",
    "TokenRevoked",
    "WalletAuthError",
]
