"""
Gate-owned state.

GateConfig (66 bytes):
    u8 tag=0x20 | authority[32] | mint[32] | u8 bump
AllowListRecord (85 bytes):
    u8 tag=0x21 | mint[32] | subject[32] | u8 allowed | u8 tier | i64 added_at
    | u8 has_expiry | i64 expires_at | u8 bump
BlockListRecord (76 bytes):
    u8 tag=0x22 | mint[32] | subject[32] | u8 blocked | u8 reason | i64 added_at | u8 bump

One record per (gate, mint, subject). A missing record means "not on the
list" and is never an error.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from tokenacl.ledger.accounts import AccountInfo
from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import Pubkey
from tokenacl.protocol.enums import AccessTier, BlockReason
from tokenacl.protocol.errors import InvalidAccountDataError
from tokenacl.utils.timestamps import unix_to_iso

GATE_CONFIG_SEED = b"gate_config"
ALLOW_RECORD_SEED = b"allow"
BLOCK_RECORD_SEED = b"block"

GATE_CONFIG_TAG = 0x20
ALLOW_RECORD_TAG = 0x21
BLOCK_RECORD_TAG = 0x22


def _check(data: bytes, tag: int, length: int, what: str) -> None:
    if len(data) != length:
        raise InvalidAccountDataError(f"{what} must be {length} bytes, got {len(data)}")
    if data[0] != tag:
        raise InvalidAccountDataError(f"Unexpected account tag 0x{data[0]:02x} for {what}")


def _flag(value: int, what: str) -> bool:
    if value > 1:
        raise InvalidAccountDataError(f"{what} must be 0 or 1")
    return bool(value)


@dataclass
class GateConfig:
    authority: Pubkey
    mint: Pubkey
    bump: int = 0

    _LAYOUT = struct.Struct("<B32s32sB")
    LEN = _LAYOUT.size

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(GATE_CONFIG_TAG, self.authority.raw, self.mint.raw, self.bump)

    @classmethod
    def from_bytes(cls, data: bytes) -> "GateConfig":
        _check(data, GATE_CONFIG_TAG, cls.LEN, "GateConfig")
        _, authority, mint, bump = cls._LAYOUT.unpack(data)
        return cls(authority=Pubkey(authority), mint=Pubkey(mint), bump=bump)


@dataclass
class AllowListRecord:
    mint: Pubkey
    subject: Pubkey
    allowed: bool = True
    access_tier: AccessTier = AccessTier.BASIC
    added_at: int = 0
    expires_at: Optional[int] = None
    bump: int = 0

    _LAYOUT = struct.Struct("<B32s32sBBqBqB")
    LEN = _LAYOUT.size

    def is_expired(self, now: int) -> bool:
        return self.expires_at is not None and now > self.expires_at

    def is_active(self, now: int) -> bool:
        return self.allowed and not self.is_expired(now)

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(
            ALLOW_RECORD_TAG,
            self.mint.raw,
            self.subject.raw,
            int(self.allowed),
            int(self.access_tier),
            self.added_at,
            int(self.expires_at is not None),
            self.expires_at or 0,
            self.bump,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "AllowListRecord":
        _check(data, ALLOW_RECORD_TAG, cls.LEN, "AllowListRecord")
        _, mint, subject, allowed, tier, added_at, has_expiry, expires_at, bump = cls._LAYOUT.unpack(data)
        try:
            tier = AccessTier(tier)
        except ValueError:
            raise InvalidAccountDataError(f"Unknown access tier {tier}") from None
        return cls(
            mint=Pubkey(mint),
            subject=Pubkey(subject),
            allowed=_flag(allowed, "allowed"),
            access_tier=tier,
            added_at=added_at,
            expires_at=expires_at if _flag(has_expiry, "has_expiry") else None,
            bump=bump,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": str(self.mint),
            "subject": str(self.subject),
            "allowed": self.allowed,
            "accessTier": self.access_tier.name.lower(),
            "addedAt": unix_to_iso(self.added_at),
            "expiresAt": unix_to_iso(self.expires_at) if self.expires_at is not None else None,
        }


@dataclass
class BlockListRecord:
    mint: Pubkey
    subject: Pubkey
    blocked: bool = True
    reason: BlockReason = BlockReason.SANCTIONS
    added_at: int = 0
    bump: int = 0

    _LAYOUT = struct.Struct("<B32s32sBBqB")
    LEN = _LAYOUT.size

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(
            BLOCK_RECORD_TAG,
            self.mint.raw,
            self.subject.raw,
            int(self.blocked),
            int(self.reason),
            self.added_at,
            self.bump,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "BlockListRecord":
        _check(data, BLOCK_RECORD_TAG, cls.LEN, "BlockListRecord")
        _, mint, subject, blocked, reason, added_at, bump = cls._LAYOUT.unpack(data)
        try:
            reason = BlockReason(reason)
        except ValueError:
            raise InvalidAccountDataError(f"Unknown block reason {reason}") from None
        return cls(
            mint=Pubkey(mint),
            subject=Pubkey(subject),
            blocked=_flag(blocked, "blocked"),
            reason=reason,
            added_at=added_at,
            bump=bump,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": str(self.mint),
            "subject": str(self.subject),
            "blocked": self.blocked,
            "reason": self.reason.name.lower(),
            "addedAt": unix_to_iso(self.added_at),
        }


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


def find_gate_config_address(mint: Pubkey, gate: Pubkey) -> Tuple[Pubkey, int]:
    return find_program_address([GATE_CONFIG_SEED, mint], gate)


def find_allow_record_address(mint: Pubkey, subject: Pubkey, gate: Pubkey) -> Tuple[Pubkey, int]:
    return find_program_address([ALLOW_RECORD_SEED, mint, subject], gate)


def find_block_record_address(mint: Pubkey, subject: Pubkey, gate: Pubkey) -> Tuple[Pubkey, int]:
    return find_program_address([BLOCK_RECORD_SEED, mint, subject], gate)


# ---------------------------------------------------------------------------
# Readers used by gate decisions
# ---------------------------------------------------------------------------


def _owned_data(info: AccountInfo, gate: Pubkey) -> Optional[bytes]:
    if info.data_is_empty():
        return None
    if info.owner != gate:
        raise InvalidAccountDataError(f"Record {info.key} is not owned by gate {gate}")
    return info.data


def read_allow_record(info: AccountInfo, gate: Pubkey) -> Optional[AllowListRecord]:
    data = _owned_data(info, gate)
    return AllowListRecord.from_bytes(data) if data is not None else None


def read_block_record(info: AccountInfo, gate: Pubkey) -> Optional[BlockListRecord]:
    data = _owned_data(info, gate)
    return BlockListRecord.from_bytes(data) if data is not None else None
