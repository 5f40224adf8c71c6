"""
Account model for the in-memory ledger.

- Account: persisted state (owner program, data bytes, executable flag)
- AccountMeta: an instruction's reference to an account plus requested privileges
- Instruction: program id + account metas + opaque data
- AccountInfo: the view a running program gets; writes are checked against
  the privileges the view was created with
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field, replace
from typing import List

from tokenacl.protocol.errors import ReadonlyDataModifiedError

from .keys import Pubkey

SYSTEM_PROGRAM_ID = Pubkey.default()


@dataclass
class Account:
    owner: Pubkey = SYSTEM_PROGRAM_ID
    data: bytes = b""
    executable: bool = False

    def clone(self) -> "Account":
        return Account(owner=self.owner, data=bytes(self.data), executable=self.executable)

    def is_empty(self) -> bool:
        return not self.data and not self.executable and self.owner == SYSTEM_PROGRAM_ID


@dataclass(frozen=True)
class AccountMeta:
    pubkey: Pubkey
    is_signer: bool = False
    is_writable: bool = False

    @classmethod
    def readonly(cls, pubkey: Pubkey, signer: bool = False) -> "AccountMeta":
        return cls(pubkey, is_signer=signer, is_writable=False)

    @classmethod
    def writable(cls, pubkey: Pubkey, signer: bool = False) -> "AccountMeta":
        return cls(pubkey, is_signer=signer, is_writable=True)

    def weakened(self) -> "AccountMeta":
        """Copy of this meta with no signing and no write capability."""
        return replace(self, is_signer=False, is_writable=False)


@dataclass
class Instruction:
    program_id: Pubkey
    accounts: List[AccountMeta] = field(default_factory=list)
    data: bytes = b""

    def serialize(self) -> bytes:
        """Deterministic byte form, used for transaction signing."""
        out = bytearray(self.program_id.raw)
        out += struct.pack("<H", len(self.accounts))
        for meta in self.accounts:
            out += meta.pubkey.raw
            out += bytes([int(meta.is_signer), int(meta.is_writable)])
        out += struct.pack("<I", len(self.data))
        out += self.data
        return bytes(out)


class AccountInfo:
    """
    A running program's handle on one account.

    is_signer / is_writable are fixed when the view is built by the runtime.
    Data can only be replaced through a writable view, and only by the
    program that owns the account.
    """

    __slots__ = ("key", "is_signer", "is_writable", "_account", "_program_id")

    def __init__(
        self,
        key: Pubkey,
        account: Account,
        *,
        is_signer: bool,
        is_writable: bool,
        program_id: Pubkey,
    ) -> None:
        self.key = key
        self.is_signer = is_signer
        self.is_writable = is_writable
        self._account = account
        self._program_id = program_id

    @property
    def owner(self) -> Pubkey:
        return self._account.owner

    @property
    def data(self) -> bytes:
        return bytes(self._account.data)

    @property
    def executable(self) -> bool:
        return self._account.executable

    def data_is_empty(self) -> bool:
        return len(self._account.data) == 0

    def set_data(self, data: bytes) -> None:
        if not self.is_writable:
            raise ReadonlyDataModifiedError(f"Account {self.key} is read-only in this invocation")
        if self._account.owner != self._program_id:
            raise ReadonlyDataModifiedError(
                f"Program {self._program_id} does not own account {self.key}"
            )
        self._account.data = bytes(data)

    def meta(self) -> AccountMeta:
        return AccountMeta(self.key, self.is_signer, self.is_writable)

    def __repr__(self) -> str:
        flags = ("s" if self.is_signer else "-") + ("w" if self.is_writable else "r")
        return f"AccountInfo({self.key!r}, {flags})"
