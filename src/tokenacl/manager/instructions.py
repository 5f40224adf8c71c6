"""
Instruction builders for the Manager.

Each builder returns an Instruction with the account order the processor
expects. Permissionless builders take the already-resolved extra accounts;
TokenAclClient resolves them from the ledger.
"""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from tokenacl.ledger.accounts import AccountMeta, Instruction
from tokenacl.ledger.keys import Pubkey
from tokenacl.ledger.token import TOKEN_PROGRAM_ID
from tokenacl.protocol.discriminators import tag_for
from tokenacl.protocol.enums import Operation
from tokenacl.protocol.errors import MalformedRequestError

from .state import MANAGER_PROGRAM_ID, find_extra_metas_address, find_mint_config_address


# ---------------------------------------------------------------------------
# Argument codecs
# ---------------------------------------------------------------------------


def _encode_option_bool(value: Optional[bool]) -> bytes:
    return b"\x00" if value is None else bytes([1, int(value)])


def encode_set_flags_args(thaw: Optional[bool], freeze: Optional[bool]) -> bytes:
    """Two optional booleans: 0 for None, or 1 followed by the value."""
    return _encode_option_bool(thaw) + _encode_option_bool(freeze)


def decode_set_flags_args(data: bytes) -> Tuple[Optional[bool], Optional[bool]]:
    values = []
    i = 0
    for _ in range(2):
        if i >= len(data):
            raise MalformedRequestError("set_flags arguments truncated")
        present = data[i]
        if present == 0:
            values.append(None)
            i += 1
        elif present == 1 and i + 1 < len(data) and data[i + 1] in (0, 1):
            values.append(bool(data[i + 1]))
            i += 2
        else:
            raise MalformedRequestError("set_flags arguments are not optional booleans")
    if i != len(data):
        raise MalformedRequestError("Trailing bytes after set_flags arguments")
    return values[0], values[1]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


def create_config(
    authority: Pubkey,
    mint: Pubkey,
    gate: Optional[Pubkey] = None,
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    config, _ = find_mint_config_address(mint, program_id)
    data = tag_for(Operation.CREATE_CONFIG) + (gate.raw if gate is not None else b"")
    return Instruction(
        program_id,
        [
            AccountMeta.readonly(authority, signer=True),
            AccountMeta.writable(config),
            AccountMeta.writable(mint),
            AccountMeta.readonly(TOKEN_PROGRAM_ID),
        ],
        data,
    )


def set_gate(
    authority: Pubkey,
    mint: Pubkey,
    gate: Optional[Pubkey],
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    """Bind `gate` to the mint; None unbinds."""
    config, _ = find_mint_config_address(mint, program_id)
    gate = gate or Pubkey.default()
    return Instruction(
        program_id,
        [AccountMeta.readonly(authority, signer=True), AccountMeta.writable(config)],
        tag_for(Operation.SET_GATE) + gate.raw,
    )


def set_flags(
    authority: Pubkey,
    mint: Pubkey,
    *,
    thaw: Optional[bool] = None,
    freeze: Optional[bool] = None,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    config, _ = find_mint_config_address(mint, program_id)
    return Instruction(
        program_id,
        [AccountMeta.readonly(authority, signer=True), AccountMeta.writable(config)],
        tag_for(Operation.SET_FLAGS) + encode_set_flags_args(thaw, freeze),
    )


def transfer_authority(
    authority: Pubkey,
    mint: Pubkey,
    new_authority: Pubkey,
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    config, _ = find_mint_config_address(mint, program_id)
    return Instruction(
        program_id,
        [
            AccountMeta.readonly(authority, signer=True),
            AccountMeta.writable(config),
            AccountMeta.readonly(new_authority),
        ],
        tag_for(Operation.TRANSFER_AUTHORITY),
    )


def forfeit_freeze_authority(
    authority: Pubkey,
    mint: Pubkey,
    new_freeze_authority: Pubkey,
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    config, _ = find_mint_config_address(mint, program_id)
    return Instruction(
        program_id,
        [
            AccountMeta.readonly(authority, signer=True),
            AccountMeta.readonly(config),
            AccountMeta.writable(mint),
            AccountMeta.readonly(TOKEN_PROGRAM_ID),
            AccountMeta.readonly(new_freeze_authority),
        ],
        tag_for(Operation.FORFEIT_FREEZE_AUTHORITY),
    )


# ---------------------------------------------------------------------------
# Freeze / thaw
# ---------------------------------------------------------------------------


def _privileged(
    op: Operation, authority: Pubkey, token_account: Pubkey, mint: Pubkey, program_id: Pubkey
) -> Instruction:
    config, _ = find_mint_config_address(mint, program_id)
    return Instruction(
        program_id,
        [
            AccountMeta.readonly(authority, signer=True),
            AccountMeta.writable(token_account),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(config),
            AccountMeta.readonly(TOKEN_PROGRAM_ID),
        ],
        tag_for(op),
    )


def freeze(
    authority: Pubkey, token_account: Pubkey, mint: Pubkey, *, program_id: Pubkey = MANAGER_PROGRAM_ID
) -> Instruction:
    return _privileged(Operation.FREEZE, authority, token_account, mint, program_id)


def thaw(
    authority: Pubkey, token_account: Pubkey, mint: Pubkey, *, program_id: Pubkey = MANAGER_PROGRAM_ID
) -> Instruction:
    return _privileged(Operation.THAW, authority, token_account, mint, program_id)


def permissionless(
    op: Operation,
    caller: Pubkey,
    token_account: Pubkey,
    mint: Pubkey,
    gate: Pubkey,
    extras: Sequence[AccountMeta] = (),
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    """
    Permissionless freeze or thaw.

    `extras` are the resolved extra accounts, in registry order. Their
    privileges are passed through as given; the Manager strips them before
    the gate sees them.
    """
    if not op.is_permissionless:
        raise ValueError(f"{op.value} is not a permissionless operation")
    config, _ = find_mint_config_address(mint, program_id)
    registry, _ = find_extra_metas_address(mint, gate, op)
    return Instruction(
        program_id,
        [
            AccountMeta.readonly(caller, signer=True),
            AccountMeta.writable(token_account),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(config),
            AccountMeta.readonly(TOKEN_PROGRAM_ID),
            AccountMeta.readonly(gate),
            AccountMeta.readonly(registry),
            *extras,
        ],
        tag_for(op),
    )


def thaw_permissionless(
    caller: Pubkey,
    token_account: Pubkey,
    mint: Pubkey,
    gate: Pubkey,
    extras: Sequence[AccountMeta] = (),
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    return permissionless(
        Operation.PERMISSIONLESS_THAW, caller, token_account, mint, gate, extras, program_id=program_id
    )


def freeze_permissionless(
    caller: Pubkey,
    token_account: Pubkey,
    mint: Pubkey,
    gate: Pubkey,
    extras: Sequence[AccountMeta] = (),
    *,
    program_id: Pubkey = MANAGER_PROGRAM_ID,
) -> Instruction:
    return permissionless(
        Operation.PERMISSIONLESS_FREEZE, caller, token_account, mint, gate, extras, program_id=program_id
    )
