"""
Caller identities for TicketFlow.

An identity wraps a secp256k1 key pair and derives a short address from
the public key.  Collections only ever see the address string; the key
pair lets callers prove they hold it.

The empty string and ``ZERO_ADDRESS`` are the zero/unset identity: they
can never own a ticket or organize an event.
"""

from __future__ import annotations

import hashlib
import os

from ecdsa import BadSignatureError, SECP256k1, SigningKey, VerifyingKey

ADDRESS_PREFIX = "t"
ADDRESS_HEX_LEN = 40
ZERO_ADDRESS = ADDRESS_PREFIX + "0" * ADDRESS_HEX_LEN


def is_zero_address(address: str | None) -> bool:
    return not address or address == ZERO_ADDRESS


def derive_address(public_key: bytes) -> str:
    """Address = prefix + first 20 bytes of SHA-256(public key), hex."""
    digest = hashlib.sha256(public_key).hexdigest()
    return ADDRESS_PREFIX + digest[:ADDRESS_HEX_LEN]


class Identity:
    """A key pair and the address it controls."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self.verifying_key: VerifyingKey = signing_key.get_verifying_key()
        self.public_key: bytes = b"\x04" + self.verifying_key.to_string()
        self.address: str = derive_address(self.public_key)

    @classmethod
    def create(cls) -> Identity:
        """Fresh identity from OS randomness."""
        secret = int.from_bytes(os.urandom(32), "big") % (SECP256k1.order - 1) + 1
        return cls(SigningKey.from_secret_exponent(secret, curve=SECP256k1))

    @classmethod
    def from_seed(cls, seed: str) -> Identity:
        """Deterministic identity (tests, fixtures, demo accounts)."""
        h = hashlib.sha256(seed.encode("utf-8")).digest()
        secret = int.from_bytes(h, "big") % (SECP256k1.order - 1) + 1
        return cls(SigningKey.from_secret_exponent(secret, curve=SECP256k1))

    def sign(self, message: bytes) -> bytes:
        return self._signing_key.sign(message, hashfunc=hashlib.sha256)

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            return self.verifying_key.verify(signature, message, hashfunc=hashlib.sha256)
        except BadSignatureError:
            return False

    def __repr__(self) -> str:
        return f"Identity({self.address})"
