"""
Manager program.

Holds the delegated freeze authority of a mint (through its MintConfig
address) and performs freeze/thaw either for the configured authority
(privileged path) or for anyone a gate approves (permissionless path).

Every request moves through:

    Idle -> ValidatingRequest -> ResolvingAccounts -> InvokingGate -> ApplyingAction -> Idle

with Rejected as the terminal failure state. Admin and privileged requests
skip the resolving and gate states.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from tokenacl.core.settings import ManagerSettings, get_settings
from tokenacl.ledger.accounts import AccountInfo, AccountMeta, Instruction
from tokenacl.ledger.derivation import create_program_address
from tokenacl.ledger.keys import PUBKEY_LEN, Pubkey
from tokenacl.ledger.runtime import InvokeContext, Program
from tokenacl.ledger.token import (
    TOKEN_PROGRAM_ID,
    Mint,
    TokenAccount,
    freeze_account,
    set_freeze_authority,
    thaw_account,
)
from tokenacl.protocol.discriminators import TAG_LEN, parse_operation, tag_for
from tokenacl.protocol.enums import ManagerState, Operation
from tokenacl.protocol.errors import (
    GateDeniedError,
    GateMismatchError,
    InvalidAccountDataError,
    InvalidDerivedAddressError,
    MalformedRequestError,
    TokenAclError,
    UnauthorizedError,
)

from . import config_store
from .deescalation import assert_deescalated, deescalate
from .instructions import decode_set_flags_args
from .resolver import ExtraAccountsResolver, resolve_metas
from .state import (
    MINT_CONFIG_SEED,
    MintConfig,
    find_extra_metas_address,
    find_mint_config_address,
)

logger = logging.getLogger(__name__)

Handler = Callable[[InvokeContext, Pubkey, List[AccountInfo], bytes, "_Lifecycle"], None]


def _expect_accounts(accounts: List[AccountInfo], count: int, op: Operation) -> None:
    if len(accounts) < count:
        raise MalformedRequestError(
            f"{op.value} expects at least {count} accounts, got {len(accounts)}"
        )


class _Lifecycle:
    """Tracks one request through the Manager states."""

    def __init__(self, op: Operation) -> None:
        self.op = op
        self.state = ManagerState.IDLE

    def advance(self, state: ManagerState) -> None:
        logger.debug("[%s] %s -> %s", self.op.value, self.state.value, state.value)
        self.state = state


class ManagerProgram(Program):
    """
    The freeze-authority manager.

    Configuration is passed in for tests; by default limits come from
    get_settings().manager.
    """

    name = "manager"

    def __init__(
        self,
        *,
        settings: Optional[ManagerSettings] = None,
        token_program_id: Pubkey = TOKEN_PROGRAM_ID,
    ) -> None:
        self._settings = settings or get_settings().manager
        self._token_program_id = token_program_id
        self._handlers: Dict[Operation, Handler] = {
            Operation.CREATE_CONFIG: self._create_config,
            Operation.SET_GATE: self._set_gate,
            Operation.SET_FLAGS: self._set_flags,
            Operation.TRANSFER_AUTHORITY: self._transfer_authority,
            Operation.FORFEIT_FREEZE_AUTHORITY: self._forfeit_freeze_authority,
            Operation.FREEZE: self._privileged,
            Operation.THAW: self._privileged,
            Operation.PERMISSIONLESS_THAW: self._permissionless,
            Operation.PERMISSIONLESS_FREEZE: self._permissionless,
        }

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
        op = parse_operation(data)
        lifecycle = _Lifecycle(op)
        lifecycle.advance(ManagerState.VALIDATING_REQUEST)
        try:
            self._handlers[op](ctx, program_id, accounts, data[TAG_LEN:], lifecycle)
        except TokenAclError as ex:
            lifecycle.advance(ManagerState.REJECTED)
            ctx.log(f"{op.value} rejected: [{ex.code.value}] {ex}")
            raise
        lifecycle.advance(ManagerState.IDLE)

    # ===========================================================
    # Shared checks
    # ===========================================================

    def _check_token_program(self, info: AccountInfo) -> None:
        if info.key != self._token_program_id:
            raise InvalidAccountDataError(f"Unexpected token program {info.key}")

    def _load_config(self, info: AccountInfo, program_id: Pubkey) -> MintConfig:
        if info.data_is_empty():
            raise InvalidAccountDataError(f"No MintConfig at {info.key}")
        if info.owner != program_id:
            raise InvalidAccountDataError(f"MintConfig {info.key} is not owned by the manager")
        config = MintConfig.from_bytes(info.data)
        if create_program_address(self._config_seeds(config), program_id) != info.key:
            raise InvalidDerivedAddressError(f"MintConfig {info.key} is not at its derived address")
        return config

    def _load_config_for_mint(
        self, info: AccountInfo, mint: Pubkey, program_id: Pubkey
    ) -> MintConfig:
        expected, _ = find_mint_config_address(mint, program_id)
        if info.key != expected:
            raise InvalidDerivedAddressError(
                f"MintConfig address {info.key} does not match derived {expected}"
            )
        return self._load_config(info, program_id)

    @staticmethod
    def _config_seeds(config: MintConfig) -> list:
        return [MINT_CONFIG_SEED, config.mint, bytes([config.bump])]

    @staticmethod
    def _token_account_for(info: AccountInfo, mint: Pubkey) -> TokenAccount:
        state = TokenAccount.from_bytes(info.data)
        if state.mint != mint:
            raise InvalidAccountDataError(f"Token account {info.key} does not belong to mint {mint}")
        return state

    def _apply(
        self,
        ctx: InvokeContext,
        *,
        freeze: bool,
        token_info: AccountInfo,
        mint_info: AccountInfo,
        config_info: AccountInfo,
        config: MintConfig,
        accounts: List[AccountInfo],
        lifecycle: _Lifecycle,
    ) -> None:
        lifecycle.advance(ManagerState.APPLYING_ACTION)
        if TokenAccount.from_bytes(token_info.data).frozen == freeze:
            ctx.log(f"{token_info.key} already {'frozen' if freeze else 'thawed'}")
            return
        builder = freeze_account if freeze else thaw_account
        ix = builder(token_info.key, mint_info.key, config_info.key)
        ctx.invoke(ix, accounts, signer_seeds=[self._config_seeds(config)])
        ctx.log(f"{'Froze' if freeze else 'Thawed'} {token_info.key}")

    # ===========================================================
    # Configuration
    # ===========================================================

    def _create_config(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 4, lifecycle.op)
        authority, config_info, mint_info, token_program = accounts[:4]
        self._check_token_program(token_program)

        gate: Optional[Pubkey] = None
        if args:
            if len(args) != PUBKEY_LEN:
                raise MalformedRequestError("create_config takes an optional 32-byte gate address")
            gate = Pubkey(args)

        expected, bump = find_mint_config_address(mint_info.key, program_id)
        if config_info.key != expected:
            raise InvalidDerivedAddressError(
                f"MintConfig address {config_info.key} does not match derived {expected}"
            )
        if mint_info.owner != self._token_program_id:
            raise InvalidAccountDataError(f"{mint_info.key} is not a token mint")
        mint = Mint.from_bytes(mint_info.data)

        config = config_store.initialize_config(
            mint_info.key,
            authority.key,
            authority_signed=authority.is_signer,
            exists=not config_info.data_is_empty(),
            bump=bump,
            gate=gate,
        )
        ctx.create_account(
            config_info,
            owner=program_id,
            data=config.to_bytes(),
            signer_seeds=self._config_seeds(config),
        )

        lifecycle.advance(ManagerState.APPLYING_ACTION)
        if mint.freeze_authority != config_info.key:
            ctx.invoke(set_freeze_authority(mint_info.key, authority.key, config_info.key), accounts)
        ctx.log(f"MintConfig {config_info.key} now holds the freeze authority of {mint_info.key}")

    def _set_gate(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 2, lifecycle.op)
        if len(args) != PUBKEY_LEN:
            raise MalformedRequestError("set_gating_program takes a 32-byte gate address")
        authority, config_info = accounts[:2]
        config = self._load_config(config_info, program_id)
        config_store.set_gate(config, authority.key, Pubkey(args), signed=authority.is_signer)
        lifecycle.advance(ManagerState.APPLYING_ACTION)
        config_info.set_data(config.to_bytes())

    def _set_flags(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 2, lifecycle.op)
        thaw, freeze = decode_set_flags_args(args)
        authority, config_info = accounts[:2]
        config = self._load_config(config_info, program_id)
        config_store.set_flags(config, authority.key, thaw, freeze, signed=authority.is_signer)
        lifecycle.advance(ManagerState.APPLYING_ACTION)
        config_info.set_data(config.to_bytes())

    def _transfer_authority(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 3, lifecycle.op)
        authority, config_info, new_authority = accounts[:3]
        config = self._load_config(config_info, program_id)
        config_store.transfer_authority(
            config, authority.key, new_authority.key, signed=authority.is_signer
        )
        lifecycle.advance(ManagerState.APPLYING_ACTION)
        config_info.set_data(config.to_bytes())

    def _forfeit_freeze_authority(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 5, lifecycle.op)
        authority, config_info, mint_info, token_program, new_freeze_authority = accounts[:5]
        self._check_token_program(token_program)
        config = self._load_config_for_mint(config_info, mint_info.key, program_id)
        config_store.require_authority(config, authority.key, authority.is_signer)

        lifecycle.advance(ManagerState.APPLYING_ACTION)
        ix = set_freeze_authority(mint_info.key, config_info.key, new_freeze_authority.key)
        ctx.invoke(ix, accounts, signer_seeds=[self._config_seeds(config)])
        logger.info("Freeze authority of %s forfeited to %s", mint_info.key, new_freeze_authority.key)
        ctx.log(f"Freeze authority of {mint_info.key} handed to {new_freeze_authority.key}")

    # ===========================================================
    # Freeze / thaw
    # ===========================================================

    def _privileged(self, ctx, program_id, accounts, args, lifecycle) -> None:
        _expect_accounts(accounts, 5, lifecycle.op)
        authority, token_info, mint_info, config_info, token_program = accounts[:5]
        self._check_token_program(token_program)
        config = self._load_config_for_mint(config_info, mint_info.key, program_id)
        config_store.require_authority(config, authority.key, authority.is_signer)
        self._token_account_for(token_info, mint_info.key)

        self._apply(
            ctx,
            freeze=lifecycle.op is Operation.FREEZE,
            token_info=token_info,
            mint_info=mint_info,
            config_info=config_info,
            config=config,
            accounts=accounts,
            lifecycle=lifecycle,
        )

    def _permissionless(self, ctx, program_id, accounts, args, lifecycle) -> None:
        op = lifecycle.op
        _expect_accounts(accounts, 7, op)
        caller, token_info, mint_info, config_info, token_program, gate_info, registry_info = accounts[:7]
        supplied_extras = accounts[7:]

        # ---- Validating ----
        if not caller.is_signer:
            raise UnauthorizedError(f"Caller {caller.key} must sign {op.value}")
        self._check_token_program(token_program)
        config = self._load_config_for_mint(config_info, mint_info.key, program_id)
        if not config.gate_configured:
            raise GateDeniedError(f"No gate bound to mint {mint_info.key}")
        if not config.permissionless_enabled(op):
            raise GateDeniedError(f"{op.value} is disabled for mint {mint_info.key}")
        if gate_info.key != config.gate_address:
            raise GateMismatchError(
                f"Gate {gate_info.key} is not the gate bound to mint {mint_info.key}"
            )
        self._token_account_for(token_info, mint_info.key)

        # ---- Resolving ----
        lifecycle.advance(ManagerState.RESOLVING_ACCOUNTS)
        gate = config.gate_address
        expected_registry, _ = find_extra_metas_address(mint_info.key, gate, op)
        if registry_info.key != expected_registry:
            raise InvalidDerivedAddressError(
                f"Extra-account registry {registry_info.key} does not match derived {expected_registry}"
            )
        if not registry_info.data_is_empty() and registry_info.owner != gate:
            raise InvalidAccountDataError(f"Registry {registry_info.key} is not owned by the gate")

        data_by_key = {info.key: info.data for info in accounts}
        load = data_by_key.get
        descriptors = ExtraAccountsResolver(gate, load).resolve(mint_info.key, op)
        if len(descriptors) > self._settings.max_extra_accounts:
            raise MalformedRequestError(
                f"Gate asks for {len(descriptors)} extra accounts, limit is "
                f"{self._settings.max_extra_accounts}"
            )

        base = [caller.key, token_info.key, mint_info.key, registry_info.key]
        resolved = resolve_metas(descriptors, base, gate, load)
        if len(supplied_extras) != len(resolved):
            raise MalformedRequestError(
                f"Expected {len(resolved)} extra accounts, got {len(supplied_extras)}"
            )
        for supplied, meta in zip(supplied_extras, resolved):
            if supplied.key != meta.pubkey:
                raise InvalidDerivedAddressError(
                    f"Extra account {supplied.key} does not match resolved {meta.pubkey}"
                )

        # ---- Invoking gate ----
        lifecycle.advance(ManagerState.INVOKING_GATE)
        forwarded = deescalate(
            [AccountMeta(key) for key in base] + resolved
        )
        assert_deescalated(forwarded)
        try:
            ctx.invoke(Instruction(gate, forwarded, tag_for(op)), accounts)
        except TokenAclError as ex:
            raise GateDeniedError(f"Gate {gate} denied {op.value} for {token_info.key}: {ex}") from ex
        ctx.log(f"Gate {gate} approved {op.value} for {token_info.key}")

        # ---- Applying ----
        self._apply(
            ctx,
            freeze=op is Operation.PERMISSIONLESS_FREEZE,
            token_info=token_info,
            mint_info=mint_info,
            config_info=config_info,
            config=config,
            accounts=accounts,
            lifecycle=lifecycle,
        )
