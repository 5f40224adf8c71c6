"""
Common machinery for the reference gates.

A gate answers the two interop operations (8-byte tags) and accepts a small
set of single-byte admin instructions from its own authority. Interop
requests arrive with the accounts

    0 caller | 1 token account | 2 mint | 3 extra-account registry | 4.. extras

all read-only and unsigned. A gate says yes by returning normally and no by
raising; anything it does not support is a no.
"""

from __future__ import annotations

import logging
import struct
from abc import abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tokenacl.ledger.accounts import AccountInfo
from tokenacl.ledger.keys import Pubkey
from tokenacl.ledger.runtime import InvokeContext, Program
from tokenacl.ledger.token import TokenAccount
from tokenacl.manager.resolver import (
    AccountDataSeed,
    AccountKeySeed,
    ExtraAccountMeta,
    LiteralSeed,
    pack_extra_metas,
)
from tokenacl.manager.state import extra_metas_seed, find_extra_metas_address
from tokenacl.protocol.discriminators import parse_gate_admin, parse_interop
from tokenacl.protocol.enums import AccessTier, BlockReason, GateAdminOp, Operation
from tokenacl.protocol.errors import (
    AccessDeniedError,
    AlreadyInitializedError,
    InvalidAccountDataError,
    InvalidDerivedAddressError,
    MalformedRequestError,
    UnauthorizedError,
)

from .state import (
    ALLOW_RECORD_SEED,
    ALLOW_RECORD_TAG,
    BLOCK_RECORD_SEED,
    BLOCK_RECORD_TAG,
    GATE_CONFIG_SEED,
    AllowListRecord,
    BlockListRecord,
    GateConfig,
    find_allow_record_address,
    find_block_record_address,
    find_gate_config_address,
)

logger = logging.getLogger(__name__)

_ALLOW_ARGS = struct.Struct("<BBq")
_BLOCK_ARGS = struct.Struct("<B")


def record_meta(seed: bytes) -> ExtraAccountMeta:
    """Descriptor for the (mint, token-account owner) record under `seed`."""
    return ExtraAccountMeta.derived(
        [
            LiteralSeed(seed),
            AccountKeySeed(2),
            AccountDataSeed(1, TokenAccount.OWNER_OFFSET, 32),
        ]
    )


ALLOW_RECORD_META = record_meta(ALLOW_RECORD_SEED)
BLOCK_RECORD_META = record_meta(BLOCK_RECORD_SEED)


def encode_allow_args(tier: AccessTier, expires_at: Optional[int] = None) -> bytes:
    return _ALLOW_ARGS.pack(int(tier), int(expires_at is not None), expires_at or 0)


def decode_allow_args(args: bytes) -> Tuple[AccessTier, Optional[int]]:
    if len(args) != _ALLOW_ARGS.size:
        raise MalformedRequestError(f"Allow-list arguments must be {_ALLOW_ARGS.size} bytes")
    tier, has_expiry, expires_at = _ALLOW_ARGS.unpack(args)
    try:
        tier = AccessTier(tier)
    except ValueError:
        raise MalformedRequestError(f"Unknown access tier {tier}") from None
    if has_expiry > 1:
        raise MalformedRequestError("has_expiry must be 0 or 1")
    return tier, expires_at if has_expiry else None


def encode_block_args(reason: BlockReason) -> bytes:
    return _BLOCK_ARGS.pack(int(reason))


def decode_block_args(args: bytes) -> BlockReason:
    if len(args) != _BLOCK_ARGS.size:
        raise MalformedRequestError("Block-list arguments must be 1 byte")
    try:
        return BlockReason(args[0])
    except ValueError:
        raise MalformedRequestError(f"Unknown block reason {args[0]}") from None


@dataclass
class GateRequest:
    """The accounts of one interop call, by role."""

    ctx: InvokeContext
    program_id: Pubkey
    caller: AccountInfo
    token_account: AccountInfo
    mint: AccountInfo
    registry: AccountInfo
    extras: List[AccountInfo]

    @property
    def now(self) -> int:
        return self.ctx.unix_timestamp

    def subject(self) -> Pubkey:
        """The owner of the token account; records are keyed by it."""
        state = TokenAccount.from_bytes(self.token_account.data)
        if state.mint != self.mint.key:
            raise InvalidAccountDataError("Token account does not belong to mint")
        return state.owner

    def extra(self, index: int) -> AccountInfo:
        if index >= len(self.extras):
            raise MalformedRequestError(f"Missing extra account {index}")
        return self.extras[index]

    def check_record_address(self, info: AccountInfo, expected: Pubkey) -> None:
        if info.key != expected:
            raise InvalidDerivedAddressError(f"Record {info.key} does not match derived {expected}")


class GateProgram(Program):
    """
    Base class for gates.

    Subclasses set SUPPORTED, describe the extra accounts each supported
    operation needs, and implement decide().
    """

    name = "gate"
    SUPPORTED: Tuple[Operation, ...] = ()

    @abstractmethod
    def decide(self, op: Operation, request: GateRequest) -> bool:
        """True to approve, False to deny."""

    @abstractmethod
    def extra_metas(self, op: Operation) -> List[ExtraAccountMeta]:
        """Registry contents written at initialize for a supported operation."""

    @abstractmethod
    def _add_subject(
        self,
        ctx: InvokeContext,
        program_id: Pubkey,
        record_info: AccountInfo,
        mint: Pubkey,
        subject: Pubkey,
        args: bytes,
    ) -> None:
        """Create or re-enable the subject's record."""

    # ===========================================================
    # Dispatch
    # ===========================================================

    def process_instruction(
        self,
        ctx: InvokeContext,
        program_id: Pubkey,
        accounts: List[AccountInfo],
        data: bytes,
    ) -> None:
        op = parse_interop(data)
        if op is not None:
            self._answer(ctx, program_id, accounts, op)
            return

        admin = parse_gate_admin(data)
        handlers = {
            GateAdminOp.INITIALIZE: self._initialize,
            GateAdminOp.ADD_SUBJECT: self._handle_add_subject,
            GateAdminOp.REMOVE_SUBJECT: self._remove_subject,
            GateAdminOp.TRANSFER_AUTHORITY: self._transfer_authority,
        }
        handlers[admin](ctx, program_id, accounts, data[1:])

    def _answer(
        self, ctx: InvokeContext, program_id: Pubkey, accounts: List[AccountInfo], op: Operation
    ) -> None:
        if op not in self.SUPPORTED:
            raise AccessDeniedError(f"{self.name} does not support {op.value}")
        if len(accounts) < 4:
            raise MalformedRequestError(f"Interop call expects at least 4 accounts, got {len(accounts)}")
        request = GateRequest(
            ctx=ctx,
            program_id=program_id,
            caller=accounts[0],
            token_account=accounts[1],
            mint=accounts[2],
            registry=accounts[3],
            extras=list(accounts[4:]),
        )
        if not self.decide(op, request):
            raise AccessDeniedError(f"{self.name} denied {op.value} for {request.token_account.key}")
        ctx.log(f"{self.name} approved {op.value} for {request.token_account.key}")

    # ===========================================================
    # Admin
    # ===========================================================

    @staticmethod
    def _expect_accounts(accounts: List[AccountInfo], count: int) -> None:
        if len(accounts) < count:
            raise MalformedRequestError(f"Expected {count} accounts, got {len(accounts)}")

    def _load_gate_config(self, info: AccountInfo, program_id: Pubkey) -> GateConfig:
        if info.data_is_empty() or info.owner != program_id:
            raise InvalidAccountDataError(f"No GateConfig at {info.key}")
        config = GateConfig.from_bytes(info.data)
        expected, _ = find_gate_config_address(config.mint, program_id)
        if info.key != expected:
            raise InvalidDerivedAddressError(f"GateConfig {info.key} is not at its derived address")
        return config

    @staticmethod
    def _require_authority(config: GateConfig, authority: AccountInfo) -> None:
        if not authority.is_signer or authority.key != config.authority:
            raise UnauthorizedError(f"{authority.key} is not the gate authority for {config.mint}")

    def _initialize(self, ctx, program_id, accounts, args) -> None:
        self._expect_accounts(accounts, 3 + len(self.SUPPORTED))
        config_info, mint_info, authority = accounts[:3]
        if not authority.is_signer:
            raise UnauthorizedError("Gate authority must sign initialize")

        expected, bump = find_gate_config_address(mint_info.key, program_id)
        if config_info.key != expected:
            raise InvalidDerivedAddressError(f"GateConfig {config_info.key} does not match derived {expected}")
        if not config_info.data_is_empty():
            raise AlreadyInitializedError(f"{self.name} already initialized for {mint_info.key}")

        config = GateConfig(authority=authority.key, mint=mint_info.key, bump=bump)
        ctx.create_account(
            config_info,
            owner=program_id,
            data=config.to_bytes(),
            signer_seeds=[GATE_CONFIG_SEED, mint_info.key, bytes([bump])],
        )

        for op, registry_info in zip(self.SUPPORTED, accounts[3:]):
            registry, registry_bump = find_extra_metas_address(mint_info.key, program_id, op)
            if registry_info.key != registry:
                raise InvalidDerivedAddressError(
                    f"Registry {registry_info.key} for {op.value} does not match derived {registry}"
                )
            ctx.create_account(
                registry_info,
                owner=program_id,
                data=pack_extra_metas(self.extra_metas(op)),
                signer_seeds=[extra_metas_seed(op), mint_info.key, bytes([registry_bump])],
            )
        logger.info("%s initialized for mint %s (authority %s)", self.name, mint_info.key, authority.key)

    def _handle_add_subject(self, ctx, program_id, accounts, args) -> None:
        self._expect_accounts(accounts, 5)
        config_info, record_info, mint_info, subject_info, authority = accounts[:5]
        config = self._load_gate_config(config_info, program_id)
        self._require_authority(config, authority)
        if mint_info.key != config.mint:
            raise InvalidAccountDataError(f"Mint {mint_info.key} is not governed by this GateConfig")
        self._add_subject(ctx, program_id, record_info, config.mint, subject_info.key, args)

    def _remove_subject(self, ctx, program_id, accounts, args) -> None:
        self._expect_accounts(accounts, 3)
        config_info, record_info, authority = accounts[:3]
        config = self._load_gate_config(config_info, program_id)
        self._require_authority(config, authority)
        if record_info.data_is_empty() or record_info.owner != program_id:
            raise InvalidAccountDataError(f"No record at {record_info.key}")

        tag = record_info.data[0]
        if tag == ALLOW_RECORD_TAG:
            record = AllowListRecord.from_bytes(record_info.data)
            record.allowed = False
        elif tag == BLOCK_RECORD_TAG:
            record = BlockListRecord.from_bytes(record_info.data)
            record.blocked = False
        else:
            raise InvalidAccountDataError(f"Account {record_info.key} is not a subject record")
        if record.mint != config.mint:
            raise InvalidAccountDataError("Record belongs to another mint")
        record_info.set_data(record.to_bytes())
        logger.info("%s: cleared %s for mint %s", self.name, record.subject, record.mint)

    def _transfer_authority(self, ctx, program_id, accounts, args) -> None:
        self._expect_accounts(accounts, 3)
        config_info, authority, new_authority = accounts[:3]
        config = self._load_gate_config(config_info, program_id)
        self._require_authority(config, authority)
        config.authority = new_authority.key
        config_info.set_data(config.to_bytes())
        logger.info("%s: authority for mint %s moved to %s", self.name, config.mint, new_authority.key)

    # ===========================================================
    # Record writers shared by the concrete gates
    # ===========================================================

    def _upsert_allow_record(
        self, ctx, program_id: Pubkey, record_info: AccountInfo, mint: Pubkey, subject: Pubkey, args: bytes
    ) -> None:
        tier, expires_at = decode_allow_args(args)
        expected, bump = find_allow_record_address(mint, subject, program_id)
        if record_info.key != expected:
            raise InvalidDerivedAddressError(f"Record {record_info.key} does not match derived {expected}")
        record = AllowListRecord(
            mint=mint,
            subject=subject,
            allowed=True,
            access_tier=tier,
            added_at=ctx.unix_timestamp,
            expires_at=expires_at,
            bump=bump,
        )
        self._store_record(
            ctx, program_id, record_info, record.to_bytes(), [ALLOW_RECORD_SEED, mint, subject, bytes([bump])]
        )
        logger.info("%s: allowed %s for mint %s (tier=%s)", self.name, subject, mint, tier.name.lower())

    def _upsert_block_record(
        self, ctx, program_id: Pubkey, record_info: AccountInfo, mint: Pubkey, subject: Pubkey, args: bytes
    ) -> None:
        reason = decode_block_args(args)
        expected, bump = find_block_record_address(mint, subject, program_id)
        if record_info.key != expected:
            raise InvalidDerivedAddressError(f"Record {record_info.key} does not match derived {expected}")
        record = BlockListRecord(
            mint=mint,
            subject=subject,
            blocked=True,
            reason=reason,
            added_at=ctx.unix_timestamp,
            bump=bump,
        )
        self._store_record(
            ctx, program_id, record_info, record.to_bytes(), [BLOCK_RECORD_SEED, mint, subject, bytes([bump])]
        )
        logger.info("%s: blocked %s for mint %s (%s)", self.name, subject, mint, reason.name.lower())

    @staticmethod
    def _store_record(ctx, program_id: Pubkey, record_info: AccountInfo, data: bytes, seeds: list) -> None:
        if record_info.data_is_empty():
            ctx.create_account(record_info, owner=program_id, data=data, signer_seeds=seeds)
        else:
            record_info.set_data(data)

