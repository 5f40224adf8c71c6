from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from tokenacl.core.settings import TokenAclSettings, get_settings
from tokenacl.gates import instructions as gate_ix
from tokenacl.gates.base import GateProgram
from tokenacl.gates.state import (
    AllowListRecord,
    BlockListRecord,
    find_allow_record_address,
    find_block_record_address,
)
from tokenacl.ledger import token as token_ix
from tokenacl.ledger.accounts import AccountMeta, Instruction
from tokenacl.ledger.keys import Keypair, Pubkey
from tokenacl.ledger.runtime import Ledger, Transaction, TransactionReceipt
from tokenacl.ledger.token import (
    TOKEN_PROGRAM_ID,
    Mint,
    TokenAccount,
    TokenProgram,
    get_associated_token_address,
)
from tokenacl.manager import instructions as manager_ix
from tokenacl.manager.processor import ManagerProgram
from tokenacl.manager.resolver import ExtraAccountsResolver
from tokenacl.manager.state import MANAGER_PROGRAM_ID, MintConfig, find_mint_config_address
from tokenacl.protocol.enums import AccessTier, BlockReason, ListKind, Operation
from tokenacl.protocol.errors import InvalidAccountDataError

logger = logging.getLogger(__name__)


class TokenAclClient:
    """
    Public client API for a ledger running the Manager.

    Builds instructions, signs them into transactions and submits them.
    Every submit either returns a receipt or raises the TokenAclError the
    ledger rejected the transaction with.

    Example:
        client = TokenAclClient.bootstrap()
        client.thaw_permissionless(caller, token_account, mint)
    """

    def __init__(self, ledger: Ledger, *, manager_id: Pubkey = MANAGER_PROGRAM_ID) -> None:
        self._ledger = ledger
        self._manager_id = manager_id

    @classmethod
    def bootstrap(
        cls,
        *,
        settings: Optional[TokenAclSettings] = None,
        unix_timestamp: Optional[int] = None,
    ) -> "TokenAclClient":
        """A fresh ledger with the token program and the Manager deployed."""
        settings = settings or get_settings()
        ledger = Ledger(settings=settings.runtime, unix_timestamp=unix_timestamp)
        ledger.deploy(TokenProgram(), TOKEN_PROGRAM_ID)
        ledger.deploy(ManagerProgram(settings=settings.manager), MANAGER_PROGRAM_ID)
        return cls(ledger)

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def manager_id(self) -> Pubkey:
        return self._manager_id

    # ----------------------------------------------------------------------
    # Submission
    # ----------------------------------------------------------------------

    def send(self, instructions: Sequence[Instruction], signers: Iterable[Keypair]) -> TransactionReceipt:
        tx = Transaction.build(instructions, signers)
        receipt = self._ledger.process_transaction(tx)
        logger.debug("Transaction %s committed at slot %d", receipt.transaction_id[:16], receipt.slot)
        return receipt

    def deploy_gate(self, gate: GateProgram, program_id: Optional[Pubkey] = None) -> Pubkey:
        return self._ledger.deploy(gate, program_id)

    # ----------------------------------------------------------------------
    # Token setup
    # ----------------------------------------------------------------------

    def create_mint(
        self, mint: Keypair, freeze_authority: Pubkey, *, default_frozen: bool = True
    ) -> TransactionReceipt:
        ix = token_ix.initialize_mint(mint.pubkey, freeze_authority, default_frozen=default_frozen)
        return self.send([ix], [mint])

    def create_token_account(self, owner: Pubkey, mint: Pubkey, payer: Keypair) -> Pubkey:
        self.send([token_ix.initialize_account(owner, mint)], [payer])
        return get_associated_token_address(owner, mint)

    # ----------------------------------------------------------------------
    # Manager configuration
    # ----------------------------------------------------------------------

    def create_config(
        self, authority: Keypair, mint: Pubkey, gate: Optional[Pubkey] = None
    ) -> TransactionReceipt:
        ix = manager_ix.create_config(authority.pubkey, mint, gate, program_id=self._manager_id)
        return self.send([ix], [authority])

    def set_gate(self, authority: Keypair, mint: Pubkey, gate: Optional[Pubkey]) -> TransactionReceipt:
        ix = manager_ix.set_gate(authority.pubkey, mint, gate, program_id=self._manager_id)
        return self.send([ix], [authority])

    def set_flags(
        self,
        authority: Keypair,
        mint: Pubkey,
        *,
        thaw: Optional[bool] = None,
        freeze: Optional[bool] = None,
    ) -> TransactionReceipt:
        ix = manager_ix.set_flags(authority.pubkey, mint, thaw=thaw, freeze=freeze, program_id=self._manager_id)
        return self.send([ix], [authority])

    def transfer_authority(self, authority: Keypair, mint: Pubkey, new_authority: Pubkey) -> TransactionReceipt:
        ix = manager_ix.transfer_authority(authority.pubkey, mint, new_authority, program_id=self._manager_id)
        return self.send([ix], [authority])

    def forfeit_freeze_authority(
        self, authority: Keypair, mint: Pubkey, new_freeze_authority: Pubkey
    ) -> TransactionReceipt:
        ix = manager_ix.forfeit_freeze_authority(
            authority.pubkey, mint, new_freeze_authority, program_id=self._manager_id
        )
        return self.send([ix], [authority])

    # ----------------------------------------------------------------------
    # Freeze / thaw
    # ----------------------------------------------------------------------

    def freeze(self, authority: Keypair, token_account: Pubkey, mint: Pubkey) -> TransactionReceipt:
        ix = manager_ix.freeze(authority.pubkey, token_account, mint, program_id=self._manager_id)
        return self.send([ix], [authority])

    def thaw(self, authority: Keypair, token_account: Pubkey, mint: Pubkey) -> TransactionReceipt:
        ix = manager_ix.thaw(authority.pubkey, token_account, mint, program_id=self._manager_id)
        return self.send([ix], [authority])

    def build_permissionless(
        self, op: Operation, caller: Pubkey, token_account: Pubkey, mint: Pubkey
    ) -> Instruction:
        """
        Permissionless instruction with the extra accounts resolved from the
        gate's registry as it currently stands on the ledger.

        With no gate bound the instruction still goes out, without extras,
        and the Manager rejects it with GateDenied.
        """
        config = self.get_mint_config(mint)
        if config is None:
            raise InvalidAccountDataError(f"No MintConfig for mint {mint}")
        extras: List[AccountMeta] = []
        if config.gate_configured:
            resolver = ExtraAccountsResolver(config.gate_address, self._ledger.account_data)
            extras = resolver.resolve_accounts(mint, op, caller, token_account)
        return manager_ix.permissionless(
            op, caller, token_account, mint, config.gate_address, extras, program_id=self._manager_id
        )

    def thaw_permissionless(self, caller: Keypair, token_account: Pubkey, mint: Pubkey) -> TransactionReceipt:
        ix = self.build_permissionless(Operation.PERMISSIONLESS_THAW, caller.pubkey, token_account, mint)
        return self.send([ix], [caller])

    def freeze_permissionless(self, caller: Keypair, token_account: Pubkey, mint: Pubkey) -> TransactionReceipt:
        ix = self.build_permissionless(Operation.PERMISSIONLESS_FREEZE, caller.pubkey, token_account, mint)
        return self.send([ix], [caller])

    # ----------------------------------------------------------------------
    # Gate administration
    # ----------------------------------------------------------------------

    def initialize_gate(self, gate_id: Pubkey, mint: Pubkey, authority: Keypair) -> TransactionReceipt:
        gate = self._ledger.program(gate_id)
        if not isinstance(gate, GateProgram):
            raise InvalidAccountDataError(f"Program at {gate_id} is not a reference gate")
        ix = gate_ix.initialize(gate_id, mint, authority.pubkey, gate.SUPPORTED)
        return self.send([ix], [authority])

    def allow_subject(
        self,
        gate_id: Pubkey,
        mint: Pubkey,
        subject: Pubkey,
        authority: Keypair,
        *,
        tier: AccessTier = AccessTier.BASIC,
        expires_at: Optional[int] = None,
        hybrid: bool = False,
    ) -> TransactionReceipt:
        ix = gate_ix.allow_subject(
            gate_id, mint, subject, authority.pubkey, tier=tier, expires_at=expires_at, hybrid=hybrid
        )
        return self.send([ix], [authority])

    def block_subject(
        self,
        gate_id: Pubkey,
        mint: Pubkey,
        subject: Pubkey,
        authority: Keypair,
        *,
        reason: BlockReason = BlockReason.SANCTIONS,
        hybrid: bool = False,
    ) -> TransactionReceipt:
        ix = gate_ix.block_subject(gate_id, mint, subject, authority.pubkey, reason=reason, hybrid=hybrid)
        return self.send([ix], [authority])

    def remove_subject(
        self, gate_id: Pubkey, mint: Pubkey, subject: Pubkey, authority: Keypair, kind: ListKind
    ) -> TransactionReceipt:
        ix = gate_ix.remove_subject(gate_id, mint, subject, authority.pubkey, kind)
        return self.send([ix], [authority])

    # ----------------------------------------------------------------------
    # Reads
    # ----------------------------------------------------------------------

    def get_mint_config(self, mint: Pubkey) -> Optional[MintConfig]:
        address, _ = find_mint_config_address(mint, self._manager_id)
        data = self._ledger.account_data(address)
        return MintConfig.from_bytes(data) if data else None

    def get_mint(self, mint: Pubkey) -> Optional[Mint]:
        data = self._ledger.account_data(mint)
        return Mint.from_bytes(data) if data else None

    def get_token_account(self, address: Pubkey) -> Optional[TokenAccount]:
        data = self._ledger.account_data(address)
        return TokenAccount.from_bytes(data) if data else None

    def is_frozen(self, address: Pubkey) -> bool:
        state = self.get_token_account(address)
        if state is None:
            raise InvalidAccountDataError(f"No token account at {address}")
        return state.frozen

    def get_allow_record(self, gate_id: Pubkey, mint: Pubkey, subject: Pubkey) -> Optional[AllowListRecord]:
        data = self._ledger.account_data(find_allow_record_address(mint, subject, gate_id)[0])
        return AllowListRecord.from_bytes(data) if data else None

    def get_block_record(self, gate_id: Pubkey, mint: Pubkey, subject: Pubkey) -> Optional[BlockListRecord]:
        data = self._ledger.account_data(find_block_record_address(mint, subject, gate_id)[0])
        return BlockListRecord.from_bytes(data) if data else None
