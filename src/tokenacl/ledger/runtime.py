"""
In-memory ledger runtime.

Executes signed transactions against a map of accounts. Each transaction is
atomic: instructions run against working copies of the touched accounts and
the copies are committed only when every instruction succeeds.

Programs may invoke other programs (nested invocation). The runtime enforces
the privilege rules that make de-escalation meaningful:
- a callee never receives write access its caller did not hold
- a callee never receives a signature its caller did not hold, except for
  addresses the caller derives from its own program id (signer seeds)
- a program already on the call stack cannot be re-entered (self-recursion
  excepted), and nesting depth is bounded
"""

from __future__ import annotations

import hashlib
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from tokenacl.core.settings import RuntimeSettings, get_settings
from tokenacl.protocol.errors import (
    AccountNotFoundError,
    CallDepthExceededError,
    InvalidAccountStateError,
    MissingSignatureError,
    PrivilegeEscalationError,
    ProgramFailedError,
    ReadonlyDataModifiedError,
    ReentrancyError,
    TokenAclError,
    UnknownProgramError,
)
from tokenacl.utils.timestamps import now_unix

from .accounts import Account, AccountInfo, Instruction
from .derivation import SeedLike, create_program_address
from .keys import Keypair, Pubkey, verify_signature

logger = logging.getLogger(__name__)

LOADER_ID = Pubkey.from_label("loader")


class Program(ABC):
    """
    An executable program.

    Programs are stateless objects; everything they persist lives in
    accounts they own.
    """

    name: str = "program"

    @abstractmethod
    def process_instruction(
        self,
        ctx: "InvokeContext",
        program_id: Pubkey,
        accounts: List[AccountInfo],
        data: bytes,
    ) -> None:
        """Run one instruction. Return normally on success, raise on failure."""


# ===========================================================================
# Transactions
# ===========================================================================


@dataclass
class Transaction:
    instructions: List[Instruction]
    signatures: Dict[Pubkey, bytes] = field(default_factory=dict)

    def message(self) -> bytes:
        out = bytearray()
        for ix in self.instructions:
            out += ix.serialize()
        return bytes(out)

    def sign(self, signers: Iterable[Keypair]) -> "Transaction":
        message = self.message()
        for kp in signers:
            self.signatures[kp.pubkey] = kp.sign(message)
        return self

    @classmethod
    def build(cls, instructions: Sequence[Instruction], signers: Iterable[Keypair]) -> "Transaction":
        return cls(list(instructions)).sign(signers)

    @property
    def id(self) -> str:
        return hashlib.sha256(self.message()).hexdigest()


@dataclass
class TransactionReceipt:
    transaction_id: str
    logs: List[str] = field(default_factory=list)
    slot: int = 0


# ===========================================================================
# Invocation context
# ===========================================================================


class InvokeContext:
    """
    Per-transaction execution state handed to every program.

    Gives programs the clock, a log sink, nested invocation and account
    creation. Account views built here share the transaction's working
    copies, so writes made by a nested call are visible to its caller.
    """

    def __init__(self, ledger: "Ledger", max_depth: int) -> None:
        self._ledger = ledger
        self._max_depth = max_depth
        self._working: Dict[Pubkey, Account] = {}
        self._stack: List[Pubkey] = []
        self.logs: List[str] = []

    # ---------------------------------------------------------------
    # Program-facing API
    # ---------------------------------------------------------------

    @property
    def unix_timestamp(self) -> int:
        return self._ledger.unix_timestamp

    @property
    def program_id(self) -> Pubkey:
        return self._stack[-1]

    @property
    def depth(self) -> int:
        return len(self._stack)

    def log(self, message: str) -> None:
        program = self._stack[-1] if self._stack else None
        line = f"Program {program}: {message}" if program else message
        self.logs.append(line)
        logger.debug(line)

    def invoke(
        self,
        instruction: Instruction,
        account_infos: Sequence[AccountInfo],
        signer_seeds: Sequence[Sequence[SeedLike]] = (),
    ) -> None:
        """
        Nested invocation from the running program.

        Every account the callee names must be among account_infos, with
        at least the privileges requested. signer_seeds let the caller sign
        for addresses derived from its own program id.
        """
        caller = self.program_id
        available: Dict[Pubkey, AccountInfo] = {}
        for info in account_infos:
            prev = available.get(info.key)
            if prev is None or (info.is_signer, info.is_writable) > (prev.is_signer, prev.is_writable):
                available[info.key] = info

        if instruction.program_id not in available:
            raise AccountNotFoundError(
                f"Program account {instruction.program_id} not provided to invoke"
            )

        pda_signers = {create_program_address(seeds, caller) for seeds in signer_seeds}

        views: List[AccountInfo] = []
        for meta in instruction.accounts:
            info = available.get(meta.pubkey)
            if info is None:
                raise AccountNotFoundError(f"Account {meta.pubkey} not provided to invoke")
            if meta.is_writable and not info.is_writable:
                raise PrivilegeEscalationError(
                    f"{meta.pubkey} requested writable but caller holds it read-only"
                )
            if meta.is_signer and not (info.is_signer or meta.pubkey in pda_signers):
                raise PrivilegeEscalationError(
                    f"{meta.pubkey} requested signer but caller cannot sign for it"
                )
            views.append(
                AccountInfo(
                    meta.pubkey,
                    self._load(meta.pubkey),
                    is_signer=meta.is_signer,
                    is_writable=meta.is_writable,
                    program_id=instruction.program_id,
                )
            )

        self._run(instruction, views)

    def create_account(
        self,
        info: AccountInfo,
        *,
        owner: Pubkey,
        data: bytes,
        signer_seeds: Optional[Sequence[SeedLike]] = None,
    ) -> None:
        """
        Allocate an empty account and assign it to owner.

        The new address must either have signed the transaction or be
        derived from the running program's id with signer_seeds.
        """
        if not info.is_writable:
            raise ReadonlyDataModifiedError(f"Account {info.key} must be writable to be created")
        account = self._load(info.key)
        if not account.is_empty():
            raise InvalidAccountStateError(f"Account {info.key} already in use")
        authorized = info.is_signer
        if not authorized and signer_seeds is not None:
            authorized = create_program_address(signer_seeds, self.program_id) == info.key
        if not authorized:
            raise MissingSignatureError(f"Creating {info.key} requires its signature")
        account.owner = owner
        account.data = bytes(data)

    # ---------------------------------------------------------------
    # Runtime internals
    # ---------------------------------------------------------------

    def _load(self, key: Pubkey) -> Account:
        account = self._working.get(key)
        if account is None:
            account = self._ledger._snapshot(key)
            self._working[key] = account
        return account

    def _execute_top_level(self, instruction: Instruction, signers: set) -> None:
        merged: Dict[Pubkey, List[bool]] = {}
        for meta in instruction.accounts:
            if meta.is_signer and meta.pubkey not in signers:
                raise MissingSignatureError(f"Missing signature for {meta.pubkey}")
            flags = merged.setdefault(meta.pubkey, [False, False])
            flags[0] = flags[0] or meta.is_signer
            flags[1] = flags[1] or meta.is_writable

        views = [
            AccountInfo(
                meta.pubkey,
                self._load(meta.pubkey),
                is_signer=merged[meta.pubkey][0],
                is_writable=merged[meta.pubkey][1],
                program_id=instruction.program_id,
            )
            for meta in instruction.accounts
        ]
        self._run(instruction, views)

    def _run(self, instruction: Instruction, views: List[AccountInfo]) -> None:
        program = self._ledger.program(instruction.program_id)
        if len(self._stack) >= self._max_depth:
            raise CallDepthExceededError(
                f"Invocation depth {len(self._stack) + 1} exceeds {self._max_depth}"
            )
        if instruction.program_id in self._stack and self._stack[-1] != instruction.program_id:
            raise ReentrancyError(f"Program {instruction.program_id} is already executing")

        self._stack.append(instruction.program_id)
        try:
            program.process_instruction(self, instruction.program_id, views, bytes(instruction.data))
        except TokenAclError:
            raise
        except Exception as ex:
            raise ProgramFailedError(f"Program '{program.name}' failed: {ex}") from ex
        finally:
            self._stack.pop()

    def _dirty(self) -> Dict[Pubkey, Account]:
        return self._working


# ===========================================================================
# Ledger
# ===========================================================================


class Ledger:
    """
    Account store plus program registry.

    Transactions are serialized with a lock; concurrent callers touching the
    same accounts simply queue behind each other.
    """

    def __init__(
        self,
        *,
        settings: Optional[RuntimeSettings] = None,
        unix_timestamp: Optional[int] = None,
    ) -> None:
        self._settings = settings or get_settings().runtime
        self._accounts: Dict[Pubkey, Account] = {}
        self._programs: Dict[Pubkey, Program] = {}
        self._lock = threading.Lock()
        self._slot = 0
        if unix_timestamp is None:
            unix_timestamp = self._settings.clock_override
        self._unix_timestamp = unix_timestamp if unix_timestamp is not None else now_unix()

    # ---------------------------------------------------------------
    # Clock
    # ---------------------------------------------------------------

    @property
    def unix_timestamp(self) -> int:
        return self._unix_timestamp

    def set_clock(self, unix_timestamp: int) -> None:
        self._unix_timestamp = unix_timestamp

    def advance_clock(self, seconds: int) -> None:
        self._unix_timestamp += seconds

    # ---------------------------------------------------------------
    # Programs and accounts
    # ---------------------------------------------------------------

    def deploy(self, program: Program, program_id: Optional[Pubkey] = None) -> Pubkey:
        program_id = program_id or Pubkey.unique()
        with self._lock:
            if program_id in self._programs:
                raise ValueError(f"Program already deployed at {program_id}")
            self._programs[program_id] = program
            self._accounts[program_id] = Account(owner=LOADER_ID, executable=True)
        logger.info("Deployed program '%s' at %s", program.name, program_id)
        return program_id

    def program(self, program_id: Pubkey) -> Program:
        program = self._programs.get(program_id)
        if program is None:
            raise UnknownProgramError(f"No program deployed at {program_id}")
        return program

    def get_account(self, key: Pubkey) -> Optional[Account]:
        with self._lock:
            account = self._accounts.get(key)
            return account.clone() if account is not None else None

    def account_data(self, key: Pubkey) -> Optional[bytes]:
        account = self.get_account(key)
        if account is None or not account.data:
            return None
        return account.data

    def _snapshot(self, key: Pubkey) -> Account:
        account = self._accounts.get(key)
        return account.clone() if account is not None else Account()

    # ---------------------------------------------------------------
    # Execution
    # ---------------------------------------------------------------

    def process_transaction(self, tx: Transaction) -> TransactionReceipt:
        """
        Verify signatures and execute all instructions atomically.

        Raises the first error any instruction raises; in that case no
        account change is kept.
        """
        signers = self._verify_signatures(tx)

        with self._lock:
            ctx = InvokeContext(self, self._settings.max_invoke_depth)
            try:
                for ix in tx.instructions:
                    ctx._execute_top_level(ix, signers)
            except TokenAclError as ex:
                logger.info("Transaction %s rejected: [%s] %s", tx.id[:16], ex.code.value, ex)
                for line in ctx.logs:
                    logger.debug("  %s", line)
                raise

            for key, account in ctx._dirty().items():
                if account.is_empty():
                    self._accounts.pop(key, None)
                else:
                    self._accounts[key] = account
            self._slot += 1
            slot = self._slot

        return TransactionReceipt(transaction_id=tx.id, logs=list(ctx.logs), slot=slot)

    def _verify_signatures(self, tx: Transaction) -> set:
        message = tx.message()
        signers = set()
        for pubkey, signature in tx.signatures.items():
            if not verify_signature(pubkey, message, signature):
                raise MissingSignatureError(f"Invalid signature for {pubkey}")
            signers.add(pubkey)
        return signers
