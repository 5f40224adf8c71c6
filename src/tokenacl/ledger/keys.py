"""
Addresses and signing keys.

An address is 32 raw bytes. Addresses backed by a keypair are Ed25519
public keys; derived addresses are deliberately chosen off the curve so
that nobody can hold a private key for them.

Signing uses Ed25519 from `cryptography`:
- Keypair.generate() for new identities (tests, demos)
- Keypair.from_private_bytes() for 32-byte seeds
- verify_signature() is offline and never raises on a bad signature
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)

PUBKEY_LEN = 32
SIGNATURE_LEN = 64

# Edwards25519 field prime and curve constant d = -121665/121666.
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


@dataclass(frozen=True, order=True)
class Pubkey:
    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, (bytes, bytearray)) or len(self.raw) != PUBKEY_LEN:
            raise ValueError(f"Pubkey must be {PUBKEY_LEN} bytes")
        object.__setattr__(self, "raw", bytes(self.raw))

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw.hex()

    def __repr__(self) -> str:
        return f"Pubkey({self.raw.hex()[:16]}…)"

    @classmethod
    def default(cls) -> "Pubkey":
        """The all-zero address, used as the "unset" sentinel."""
        return cls(bytes(PUBKEY_LEN))

    @classmethod
    def unique(cls) -> "Pubkey":
        return cls(os.urandom(PUBKEY_LEN))

    @classmethod
    def from_string(cls, value: str) -> "Pubkey":
        return cls(bytes.fromhex(value))

    @classmethod
    def from_label(cls, label: str) -> "Pubkey":
        """Stable address for a well-known program, e.g. Pubkey.from_label("token")."""
        return cls(hashlib.sha256(f"tokenacl:program:{label}".encode("utf-8")).digest())

    def is_default(self) -> bool:
        return self.raw == bytes(PUBKEY_LEN)

    def is_on_curve(self) -> bool:
        return is_on_curve(self.raw)


def is_on_curve(data: bytes) -> bool:
    """
    True if data decompresses to a point on Edwards25519.

    Decompression succeeds iff x^2 = (y^2 - 1) / (d*y^2 + 1) has a square root
    in the field. The sign bit never makes decompression fail.
    """
    if len(data) != PUBKEY_LEN:
        return False
    y = int.from_bytes(data, "little") & ((1 << 255) - 1)
    y %= _P
    yy = y * y % _P
    u = (yy - 1) % _P
    v = (_D * yy + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    return x2 == 0 or pow(x2, (_P - 1) // 2, _P) == 1


class Keypair:
    """
    Ed25519 keypair for transaction signing.

    Usage:
        kp = Keypair.generate()
        sig = kp.sign(message)
        assert verify_signature(kp.pubkey, message, sig)
    """

    def __init__(self, private_key: Ed25519PrivateKey):
        self._private_key = private_key
        public_bytes = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )
        self._pubkey = Pubkey(public_bytes)

    @property
    def pubkey(self) -> Pubkey:
        return self._pubkey

    def sign(self, message: bytes) -> bytes:
        """Sign message. Returns a 64-byte signature."""
        return self._private_key.sign(message)

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, key_bytes: bytes) -> "Keypair":
        """Create keypair from a raw 32-byte private key."""
        return cls(Ed25519PrivateKey.from_private_bytes(key_bytes))

    def __repr__(self) -> str:
        return f"Keypair({self._pubkey!r})"


def verify_signature(pubkey: Pubkey, message: bytes, signature: bytes) -> bool:
    """
    Verify an Ed25519 signature.

    Returns False for invalid signatures and for addresses that are not
    valid public keys (derived addresses can never sign).
    """
    if len(signature) != SIGNATURE_LEN:
        return False
    try:
        public_key = Ed25519PublicKey.from_public_bytes(pubkey.raw)
        public_key.verify(signature, message)
        return True
    except (InvalidSignature, ValueError):
        return False
