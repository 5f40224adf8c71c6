"""
Extra-accounts resolution.

A gate deployer stores, per (mint, operation), an ordered list of
ExtraAccountMeta descriptors in a registry account derived from the gate's
program id. Both the client (to build the request) and the Manager (to
check it) resolve the descriptors into concrete addresses against the fixed
interface accounts:

    0 caller | 1 token account | 2 mint | 3 registry | 4.. extras resolved so far

Descriptor layout (35 bytes): u8 kind | config[32] | u8 is_signer | u8 is_writable
Registry layout: u8 tag=0x30 | u8 count | count x descriptor

Signer/writable flags are hints from the deployer. The Manager de-escalates
every resolved account regardless of what the descriptor says.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Callable, List, Optional, Sequence, Union

from tokenacl.ledger.accounts import AccountMeta
from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import PUBKEY_LEN, Pubkey
from tokenacl.protocol.enums import Operation
from tokenacl.protocol.errors import InvalidAccountDataError, MalformedRequestError

from .state import find_extra_metas_address

logger = logging.getLogger(__name__)

EXTRA_METAS_TAG = 0x30
CONFIG_LEN = 32

AccountLoader = Callable[[Pubkey], Optional[bytes]]


class MetaKind(IntEnum):
    FIXED = 0
    DERIVED = 1
    ACCOUNT_DATA_KEY = 2


class SeedKind(IntEnum):
    LITERAL = 1
    ACCOUNT_KEY = 3
    ACCOUNT_DATA = 4


# ===========================================================================
# Seeds
# ===========================================================================


@dataclass(frozen=True)
class LiteralSeed:
    value: bytes

    def pack(self) -> bytes:
        return bytes([SeedKind.LITERAL, len(self.value)]) + self.value


@dataclass(frozen=True)
class AccountKeySeed:
    index: int

    def pack(self) -> bytes:
        return bytes([SeedKind.ACCOUNT_KEY, self.index])


@dataclass(frozen=True)
class AccountDataSeed:
    index: int
    offset: int
    length: int

    def pack(self) -> bytes:
        return bytes([SeedKind.ACCOUNT_DATA, self.index, self.offset, self.length])


Seed = Union[LiteralSeed, AccountKeySeed, AccountDataSeed]


def pack_seeds(seeds: Sequence[Seed]) -> bytes:
    out = b"".join(s.pack() for s in seeds)
    if len(out) > CONFIG_LEN:
        raise ValueError(f"Packed seeds take {len(out)} bytes, limit is {CONFIG_LEN}")
    return out.ljust(CONFIG_LEN, b"\x00")


def unpack_seeds(config: bytes) -> List[Seed]:
    seeds: List[Seed] = []
    i = 0
    while i < len(config) and config[i] != 0:
        kind = config[i]
        if kind == SeedKind.LITERAL:
            if i + 2 > len(config):
                raise InvalidAccountDataError("Truncated literal seed")
            length = config[i + 1]
            if i + 2 + length > len(config):
                raise InvalidAccountDataError("Truncated literal seed")
            seeds.append(LiteralSeed(bytes(config[i + 2 : i + 2 + length])))
            i += 2 + length
        elif kind == SeedKind.ACCOUNT_KEY:
            if i + 2 > len(config):
                raise InvalidAccountDataError("Truncated account-key seed")
            seeds.append(AccountKeySeed(config[i + 1]))
            i += 2
        elif kind == SeedKind.ACCOUNT_DATA:
            if i + 4 > len(config):
                raise InvalidAccountDataError("Truncated account-data seed")
            seeds.append(AccountDataSeed(config[i + 1], config[i + 2], config[i + 3]))
            i += 4
        else:
            raise InvalidAccountDataError(f"Unknown seed kind {kind}")
    return seeds


# ===========================================================================
# Descriptors
# ===========================================================================


@dataclass(frozen=True)
class ExtraAccountMeta:
    kind: MetaKind
    config: bytes
    is_signer: bool = False
    is_writable: bool = False

    _LAYOUT = struct.Struct("<B32sBB")
    LEN = _LAYOUT.size

    @classmethod
    def fixed(cls, pubkey: Pubkey, *, signer: bool = False, writable: bool = False) -> "ExtraAccountMeta":
        return cls(MetaKind.FIXED, pubkey.raw, signer, writable)

    @classmethod
    def derived(
        cls, seeds: Sequence[Seed], *, signer: bool = False, writable: bool = False
    ) -> "ExtraAccountMeta":
        return cls(MetaKind.DERIVED, pack_seeds(seeds), signer, writable)

    @classmethod
    def from_account_data(
        cls, index: int, offset: int, *, signer: bool = False, writable: bool = False
    ) -> "ExtraAccountMeta":
        """The address stored at data[offset:offset+32] of account `index`."""
        config = bytes([index, offset]).ljust(CONFIG_LEN, b"\x00")
        return cls(MetaKind.ACCOUNT_DATA_KEY, config, signer, writable)

    def to_bytes(self) -> bytes:
        return self._LAYOUT.pack(self.kind, self.config, int(self.is_signer), int(self.is_writable))

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExtraAccountMeta":
        if len(data) != cls.LEN:
            raise InvalidAccountDataError(f"ExtraAccountMeta must be {cls.LEN} bytes")
        kind, config, signer, writable = cls._LAYOUT.unpack(data)
        try:
            kind = MetaKind(kind)
        except ValueError:
            raise InvalidAccountDataError(f"Unknown extra account kind {kind}") from None
        return cls(kind, config, bool(signer), bool(writable))

    def seeds(self) -> List[Seed]:
        return unpack_seeds(self.config) if self.kind is MetaKind.DERIVED else []

    def resolve_address(
        self, keys: Sequence[Pubkey], program_id: Pubkey, load: AccountLoader
    ) -> Pubkey:
        if self.kind is MetaKind.FIXED:
            return Pubkey(self.config)

        if self.kind is MetaKind.ACCOUNT_DATA_KEY:
            index, offset = self.config[0], self.config[1]
            data = _account_data(keys, index, load)
            if offset + PUBKEY_LEN > len(data):
                raise InvalidAccountDataError(
                    f"Account {index} too short to hold an address at offset {offset}"
                )
            return Pubkey(data[offset : offset + PUBKEY_LEN])

        seeds: List[bytes] = []
        for seed in self.seeds():
            if isinstance(seed, LiteralSeed):
                seeds.append(seed.value)
            elif isinstance(seed, AccountKeySeed):
                seeds.append(_key_at(keys, seed.index).raw)
            else:
                data = _account_data(keys, seed.index, load)
                end = seed.offset + seed.length
                if end > len(data):
                    raise InvalidAccountDataError(f"Seed slice out of range for account {seed.index}")
                seeds.append(data[seed.offset : end])
        address, _ = find_program_address(seeds, program_id)
        return address


def _key_at(keys: Sequence[Pubkey], index: int) -> Pubkey:
    if index >= len(keys):
        raise MalformedRequestError(f"Seed references account {index}, only {len(keys)} known")
    return keys[index]


def _account_data(keys: Sequence[Pubkey], index: int, load: AccountLoader) -> bytes:
    return load(_key_at(keys, index)) or b""


# ===========================================================================
# Registry codec
# ===========================================================================


def pack_extra_metas(metas: Sequence[ExtraAccountMeta]) -> bytes:
    if len(metas) > 255:
        raise ValueError("At most 255 extra accounts per registry")
    return bytes([EXTRA_METAS_TAG, len(metas)]) + b"".join(m.to_bytes() for m in metas)


def unpack_extra_metas(data: bytes) -> List[ExtraAccountMeta]:
    if len(data) < 2 or data[0] != EXTRA_METAS_TAG:
        raise InvalidAccountDataError("Account is not an extra-account registry")
    count = data[1]
    if len(data) != 2 + count * ExtraAccountMeta.LEN:
        raise InvalidAccountDataError("Extra-account registry length does not match its count")
    return [
        ExtraAccountMeta.from_bytes(data[2 + i * ExtraAccountMeta.LEN : 2 + (i + 1) * ExtraAccountMeta.LEN])
        for i in range(count)
    ]


def resolve_metas(
    descriptors: Sequence[ExtraAccountMeta],
    base_keys: Sequence[Pubkey],
    program_id: Pubkey,
    load: AccountLoader,
) -> List[AccountMeta]:
    """
    Turn descriptors into concrete AccountMetas.

    Each resolved address is appended to the key list, so later descriptors
    may reference earlier extras by index.
    """
    keys = list(base_keys)
    out: List[AccountMeta] = []
    for descriptor in descriptors:
        address = descriptor.resolve_address(keys, program_id, load)
        keys.append(address)
        out.append(AccountMeta(address, descriptor.is_signer, descriptor.is_writable))
    return out


class ExtraAccountsResolver:
    """
    Looks up and resolves the extra accounts a gate asks for.

    `load` returns an account's data or None when the account does not
    exist; the Manager backs it with the accounts of the current request,
    clients back it with the ledger.
    """

    def __init__(self, gate: Pubkey, load: AccountLoader) -> None:
        self._gate = gate
        self._load = load

    @property
    def gate(self) -> Pubkey:
        return self._gate

    def registry_address(self, mint: Pubkey, op: Operation) -> Pubkey:
        return find_extra_metas_address(mint, self._gate, op)[0]

    def resolve(self, mint: Pubkey, op: Operation) -> List[ExtraAccountMeta]:
        """Descriptors registered for (mint, op); an absent registry means none."""
        data = self._load(self.registry_address(mint, op))
        if not data:
            logger.debug("No extra-account registry for mint %s op %s", mint, op.value)
            return []
        return unpack_extra_metas(data)

    def resolve_accounts(
        self, mint: Pubkey, op: Operation, caller: Pubkey, token_account: Pubkey
    ) -> List[AccountMeta]:
        base = [caller, token_account, mint, self.registry_address(mint, op)]
        return resolve_metas(self.resolve(mint, op), base, self._gate, self._load)
