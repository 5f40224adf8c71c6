"""
Admin instruction builders for the reference gates.
"""

from __future__ import annotations

from typing import Optional, Sequence

from tokenacl.ledger.accounts import AccountMeta, Instruction
from tokenacl.ledger.keys import Pubkey
from tokenacl.manager.state import find_extra_metas_address
from tokenacl.protocol.enums import AccessTier, BlockReason, GateAdminOp, ListKind, Operation

from .base import encode_allow_args, encode_block_args
from .state import find_allow_record_address, find_block_record_address, find_gate_config_address


def initialize(
    gate: Pubkey, mint: Pubkey, authority: Pubkey, supported: Sequence[Operation]
) -> Instruction:
    """`supported` is the gate class's SUPPORTED tuple; registries follow its order."""
    config, _ = find_gate_config_address(mint, gate)
    registries = [AccountMeta.writable(find_extra_metas_address(mint, gate, op)[0]) for op in supported]
    return Instruction(
        gate,
        [
            AccountMeta.writable(config),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(authority, signer=True),
            *registries,
        ],
        bytes([GateAdminOp.INITIALIZE]),
    )


def _add_subject(gate: Pubkey, mint: Pubkey, subject: Pubkey, authority: Pubkey, record: Pubkey, args: bytes) -> Instruction:
    config, _ = find_gate_config_address(mint, gate)
    return Instruction(
        gate,
        [
            AccountMeta.readonly(config),
            AccountMeta.writable(record),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(subject),
            AccountMeta.readonly(authority, signer=True),
        ],
        bytes([GateAdminOp.ADD_SUBJECT]) + args,
    )


def allow_subject(
    gate: Pubkey,
    mint: Pubkey,
    subject: Pubkey,
    authority: Pubkey,
    *,
    tier: AccessTier = AccessTier.BASIC,
    expires_at: Optional[int] = None,
    hybrid: bool = False,
) -> Instruction:
    record, _ = find_allow_record_address(mint, subject, gate)
    args = encode_allow_args(tier, expires_at)
    if hybrid:
        args = bytes([ListKind.ALLOW]) + args
    return _add_subject(gate, mint, subject, authority, record, args)


def block_subject(
    gate: Pubkey,
    mint: Pubkey,
    subject: Pubkey,
    authority: Pubkey,
    *,
    reason: BlockReason = BlockReason.SANCTIONS,
    hybrid: bool = False,
) -> Instruction:
    record, _ = find_block_record_address(mint, subject, gate)
    args = encode_block_args(reason)
    if hybrid:
        args = bytes([ListKind.BLOCK]) + args
    return _add_subject(gate, mint, subject, authority, record, args)


def remove_subject(
    gate: Pubkey, mint: Pubkey, subject: Pubkey, authority: Pubkey, kind: ListKind
) -> Instruction:
    config, _ = find_gate_config_address(mint, gate)
    if kind is ListKind.ALLOW:
        record, _ = find_allow_record_address(mint, subject, gate)
    else:
        record, _ = find_block_record_address(mint, subject, gate)
    return Instruction(
        gate,
        [
            AccountMeta.readonly(config),
            AccountMeta.writable(record),
            AccountMeta.readonly(authority, signer=True),
        ],
        bytes([GateAdminOp.REMOVE_SUBJECT]),
    )


def transfer_authority(gate: Pubkey, mint: Pubkey, authority: Pubkey, new_authority: Pubkey) -> Instruction:
    config, _ = find_gate_config_address(mint, gate)
    return Instruction(
        gate,
        [
            AccountMeta.writable(config),
            AccountMeta.readonly(authority, signer=True),
            AccountMeta.readonly(new_authority),
        ],
        bytes([GateAdminOp.TRANSFER_AUTHORITY]),
    )
