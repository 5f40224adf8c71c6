"""
Minimal fungible-token program.

Only what the freeze/thaw protocol needs: mints with a freeze authority and
a default account state, token accounts at associated addresses, and the
freeze / thaw / set-freeze-authority instructions. Balances and transfers
are not modelled.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple

from tokenacl.protocol.errors import (
    InvalidAccountDataError,
    InvalidAccountStateError,
    MalformedRequestError,
    MissingSignatureError,
    UnauthorizedError,
    UnknownOperationError,
)

from .accounts import AccountInfo, AccountMeta, Instruction
from .derivation import find_program_address
from .keys import Pubkey
from .runtime import InvokeContext, Program

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = Pubkey.from_label("token")

MINT_TAG = 0x10
TOKEN_ACCOUNT_TAG = 0x11


class TokenInstruction(IntEnum):
    INITIALIZE_MINT = 0
    INITIALIZE_ACCOUNT = 1
    FREEZE_ACCOUNT = 2
    THAW_ACCOUNT = 3
    SET_FREEZE_AUTHORITY = 4


# ===========================================================================
# State
# ===========================================================================


@dataclass
class Mint:
    freeze_authority: Optional[Pubkey]
    default_frozen: bool = False

    _LAYOUT = struct.Struct("<B32sB")
    LEN = _LAYOUT.size

    def to_bytes(self) -> bytes:
        authority = self.freeze_authority or Pubkey.default()
        return self._LAYOUT.pack(MINT_TAG, authority.raw, int(self.default_frozen))

    @classmethod
    def from_bytes(cls, data: bytes) -> "Mint":
        if len(data) != cls.LEN or data[0] != MINT_TAG:
            raise InvalidAccountDataError("Account is not a mint")
        _, authority, frozen = cls._LAYOUT.unpack(data)
        key = Pubkey(authority)
        return cls(freeze_authority=None if key.is_default() else key, default_frozen=bool(frozen))


@dataclass
class TokenAccount:
    mint: Pubkey
    owner: Pubkey
    frozen: bool = False

    _LAYOUT = struct.Struct("<B32s32sB")
    LEN = _LAYOUT.size
    OWNER_OFFSET = 33

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(TOKEN_ACCOUNT_TAG, self.mint.raw, self.owner.raw, int(self.frozen))

    @classmethod
    def from_bytes(cls, data: bytes) -> "TokenAccount":
        if len(data) != cls.LEN or data[0] != TOKEN_ACCOUNT_TAG:
            raise InvalidAccountDataError("Account is not a token account")
        _, mint, owner, frozen = cls._LAYOUT.unpack(data)
        return cls(mint=Pubkey(mint), owner=Pubkey(owner), frozen=bool(frozen))


def find_associated_token_address(owner: Pubkey, mint: Pubkey) -> Tuple[Pubkey, int]:
    return find_program_address([owner, mint], TOKEN_PROGRAM_ID)


def get_associated_token_address(owner: Pubkey, mint: Pubkey) -> Pubkey:
    return find_associated_token_address(owner, mint)[0]


# ===========================================================================
# Instruction builders
# ===========================================================================


def initialize_mint(
    mint: Pubkey, freeze_authority: Optional[Pubkey], *, default_frozen: bool = False
) -> Instruction:
    authority = freeze_authority or Pubkey.default()
    data = bytes([TokenInstruction.INITIALIZE_MINT]) + authority.raw + bytes([int(default_frozen)])
    return Instruction(TOKEN_PROGRAM_ID, [AccountMeta.writable(mint, signer=True)], data)


def initialize_account(owner: Pubkey, mint: Pubkey) -> Instruction:
    token_account = get_associated_token_address(owner, mint)
    return Instruction(
        TOKEN_PROGRAM_ID,
        [
            AccountMeta.writable(token_account),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(owner),
        ],
        bytes([TokenInstruction.INITIALIZE_ACCOUNT]),
    )


def freeze_account(token_account: Pubkey, mint: Pubkey, authority: Pubkey) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        [
            AccountMeta.writable(token_account),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(authority, signer=True),
        ],
        bytes([TokenInstruction.FREEZE_ACCOUNT]),
    )


def thaw_account(token_account: Pubkey, mint: Pubkey, authority: Pubkey) -> Instruction:
    return Instruction(
        TOKEN_PROGRAM_ID,
        [
            AccountMeta.writable(token_account),
            AccountMeta.readonly(mint),
            AccountMeta.readonly(authority, signer=True),
        ],
        bytes([TokenInstruction.THAW_ACCOUNT]),
    )


def set_freeze_authority(mint: Pubkey, current: Pubkey, new: Optional[Pubkey]) -> Instruction:
    new_key = new or Pubkey.default()
    return Instruction(
        TOKEN_PROGRAM_ID,
        [AccountMeta.writable(mint), AccountMeta.readonly(current, signer=True)],
        bytes([TokenInstruction.SET_FREEZE_AUTHORITY]) + new_key.raw,
    )


# ===========================================================================
# Program
# ===========================================================================


def _expect_accounts(accounts: List[AccountInfo], count: int) -> None:
    if len(accounts) < count:
        raise MalformedRequestError(f"Expected {count} accounts, got {len(accounts)}")


class TokenProgram(Program):
    name = "token"

    def process_instruction(
        self,
        ctx: InvokeContext,
        program_id: Pubkey,
        accounts: List[AccountInfo],
        data: bytes,
    ) -> None:
        if not data:
            raise MalformedRequestError("Empty token instruction")
        try:
            op = TokenInstruction(data[0])
        except ValueError:
            raise UnknownOperationError(f"Unknown token instruction {data[0]}") from None

        if op is TokenInstruction.INITIALIZE_MINT:
            self._initialize_mint(ctx, program_id, accounts, data[1:])
        elif op is TokenInstruction.INITIALIZE_ACCOUNT:
            self._initialize_account(ctx, program_id, accounts)
        elif op in (TokenInstruction.FREEZE_ACCOUNT, TokenInstruction.THAW_ACCOUNT):
            self._set_frozen(ctx, accounts, freeze=op is TokenInstruction.FREEZE_ACCOUNT)
        elif op is TokenInstruction.SET_FREEZE_AUTHORITY:
            self._set_freeze_authority(ctx, accounts, data[1:])

    def _initialize_mint(self, ctx, program_id, accounts, args: bytes) -> None:
        _expect_accounts(accounts, 1)
        if len(args) != 33:
            raise MalformedRequestError("InitializeMint expects 33 bytes of arguments")
        authority = Pubkey(args[:32])
        mint = Mint(
            freeze_authority=None if authority.is_default() else authority,
            default_frozen=bool(args[32]),
        )
        ctx.create_account(accounts[0], owner=program_id, data=mint.to_bytes())
        ctx.log(f"Initialized mint {accounts[0].key}")

    def _initialize_account(self, ctx, program_id, accounts) -> None:
        _expect_accounts(accounts, 3)
        token_info, mint_info, owner_info = accounts[:3]
        mint = Mint.from_bytes(mint_info.data)
        expected, bump = find_associated_token_address(owner_info.key, mint_info.key)
        if token_info.key != expected:
            raise InvalidAccountDataError("Token account is not the associated address")
        state = TokenAccount(mint=mint_info.key, owner=owner_info.key, frozen=mint.default_frozen)
        ctx.create_account(
            token_info,
            owner=program_id,
            data=state.to_bytes(),
            signer_seeds=[owner_info.key, mint_info.key, bytes([bump])],
        )
        ctx.log(f"Initialized token account {token_info.key} (frozen={state.frozen})")

    def _set_frozen(self, ctx, accounts, *, freeze: bool) -> None:
        _expect_accounts(accounts, 3)
        token_info, mint_info, authority_info = accounts[:3]
        state = TokenAccount.from_bytes(token_info.data)
        mint = Mint.from_bytes(mint_info.data)
        if state.mint != mint_info.key:
            raise InvalidAccountDataError("Token account does not belong to mint")
        if mint.freeze_authority is None:
            raise InvalidAccountStateError("Mint has no freeze authority")
        if authority_info.key != mint.freeze_authority:
            raise UnauthorizedError("Signer is not the mint freeze authority")
        if not authority_info.is_signer:
            raise MissingSignatureError("Freeze authority must sign")
        if state.frozen == freeze:
            raise InvalidAccountStateError(
                "Account is already frozen" if freeze else "Account is not frozen"
            )
        state.frozen = freeze
        token_info.set_data(state.to_bytes())
        ctx.log(f"{'Froze' if freeze else 'Thawed'} token account {token_info.key}")

    def _set_freeze_authority(self, ctx, accounts, args: bytes) -> None:
        _expect_accounts(accounts, 2)
        if len(args) != 32:
            raise MalformedRequestError("SetFreezeAuthority expects a 32-byte address")
        mint_info, current_info = accounts[:2]
        mint = Mint.from_bytes(mint_info.data)
        if mint.freeze_authority is None or current_info.key != mint.freeze_authority:
            raise UnauthorizedError("Signer is not the mint freeze authority")
        if not current_info.is_signer:
            raise MissingSignatureError("Freeze authority must sign")
        new_key = Pubkey(args)
        mint.freeze_authority = None if new_key.is_default() else new_key
        mint_info.set_data(mint.to_bytes())
        ctx.log(f"Freeze authority of {mint_info.key} set to {mint.freeze_authority}")
