"""
Manager-owned state: MintConfig and the well-known seeds.

MintConfig layout (100 bytes, little endian):
    u8 tag=0x01 | mint[32] | authority[32] | gate[32] | u8 thaw | u8 freeze | u8 bump
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Tuple

from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import Pubkey
from tokenacl.protocol.enums import Operation
from tokenacl.protocol.errors import InvalidAccountDataError

MANAGER_PROGRAM_ID = Pubkey.from_label("manager")

MINT_CONFIG_SEED = b"MINT_CFG"
THAW_EXTRA_ACCOUNT_METAS_SEED = b"thaw-extra-account-metas"
FREEZE_EXTRA_ACCOUNT_METAS_SEED = b"freeze-extra-account-metas"

MINT_CONFIG_TAG = 0x01


@dataclass
class MintConfig:
    mint: Pubkey
    authority: Pubkey
    gate_address: Pubkey = Pubkey.default()
    enable_permissionless_thaw: bool = False
    enable_permissionless_freeze: bool = False
    bump: int = 0

    _LAYOUT = struct.Struct("<B32s32s32sBBB")
    LEN = _LAYOUT.size

    @property
    def gate_configured(self) -> bool:
        return not self.gate_address.is_default()

    def permissionless_enabled(self, op: Operation) -> bool:
        """True only when the action's flag is set and a gate is bound."""
        if op is Operation.PERMISSIONLESS_THAW:
            flag = self.enable_permissionless_thaw
        elif op is Operation.PERMISSIONLESS_FREEZE:
            flag = self.enable_permissionless_freeze
        else:
            return False
        return flag and self.gate_configured

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(
            MINT_CONFIG_TAG,
            self.mint.raw,
            self.authority.raw,
            self.gate_address.raw,
            int(self.enable_permissionless_thaw),
            int(self.enable_permissionless_freeze),
            self.bump,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> "MintConfig":
        if len(data) != cls.LEN:
            raise InvalidAccountDataError(
                f"MintConfig must be {cls.LEN} bytes, got {len(data)}"
            )
        if data[0] != MINT_CONFIG_TAG:
            raise InvalidAccountDataError(f"Unexpected account tag 0x{data[0]:02x} for MintConfig")
        _, mint, authority, gate, thaw, freeze, bump = cls._LAYOUT.unpack(data)
        if thaw > 1 or freeze > 1:
            raise InvalidAccountDataError("MintConfig flags must be 0 or 1")
        return cls(
            mint=Pubkey(mint),
            authority=Pubkey(authority),
            gate_address=Pubkey(gate),
            enable_permissionless_thaw=bool(thaw),
            enable_permissionless_freeze=bool(freeze),
            bump=bump,
        )

    def to_dict(self) -> dict:
        return {
            "mint": str(self.mint),
            "authority": str(self.authority),
            "gateAddress": None if not self.gate_configured else str(self.gate_address),
            "enablePermissionlessThaw": self.enable_permissionless_thaw,
            "enablePermissionlessFreeze": self.enable_permissionless_freeze,
            "bump": self.bump,
        }


def find_mint_config_address(
    mint: Pubkey, program_id: Pubkey = MANAGER_PROGRAM_ID
) -> Tuple[Pubkey, int]:
    return find_program_address([MINT_CONFIG_SEED, mint], program_id)


def extra_metas_seed(op: Operation) -> bytes:
    if op is Operation.PERMISSIONLESS_THAW:
        return THAW_EXTRA_ACCOUNT_METAS_SEED
    if op is Operation.PERMISSIONLESS_FREEZE:
        return FREEZE_EXTRA_ACCOUNT_METAS_SEED
    raise ValueError(f"Operation {op.value} has no extra-account registry")


def find_extra_metas_address(mint: Pubkey, gate: Pubkey, op: Operation) -> Tuple[Pubkey, int]:
    """Registry of extra accounts for (mint, op), owned by the gate."""
    return find_program_address([extra_metas_seed(op), mint], gate)
