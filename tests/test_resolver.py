"""
Tests for extra-account resolution.
"""

import pytest

from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import Pubkey
from tokenacl.ledger.token import TokenAccount
from tokenacl.manager.resolver import (
    AccountDataSeed,
    AccountKeySeed,
    ExtraAccountMeta,
    ExtraAccountsResolver,
    LiteralSeed,
    pack_extra_metas,
    resolve_metas,
)
from tokenacl.manager.state import find_extra_metas_address
from tokenacl.protocol.enums import Operation
from tokenacl.protocol.errors import InvalidAccountDataError, MalformedRequestError


@pytest.fixture
def gate():
    return Pubkey.from_label("resolver-gate")


@pytest.fixture
def accounts():
    """caller, token account, mint, registry plus the token account's data."""
    owner = Pubkey.unique()
    mint = Pubkey.unique()
    token_account = Pubkey.unique()
    data = {token_account: TokenAccount(mint=mint, owner=owner).to_bytes()}
    return {
        "caller": Pubkey.unique(),
        "token_account": token_account,
        "mint": mint,
        "owner": owner,
        "data": data,
    }


class TestResolveMetas:
    def test_fixed(self, gate, accounts):
        target = Pubkey.unique()
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        [meta] = resolve_metas([ExtraAccountMeta.fixed(target, writable=True)], base, gate, accounts["data"].get)
        assert meta.pubkey == target
        assert meta.is_writable

    def test_derived_from_key_and_data(self, gate, accounts):
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        descriptor = ExtraAccountMeta.derived(
            [LiteralSeed(b"allow"), AccountKeySeed(2), AccountDataSeed(1, TokenAccount.OWNER_OFFSET, 32)]
        )
        [meta] = resolve_metas([descriptor], base, gate, accounts["data"].get)
        expected, _ = find_program_address([b"allow", accounts["mint"], accounts["owner"]], gate)
        assert meta.pubkey == expected

    def test_account_data_key(self, gate, accounts):
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        descriptor = ExtraAccountMeta.from_account_data(1, TokenAccount.OWNER_OFFSET)
        [meta] = resolve_metas([descriptor], base, gate, accounts["data"].get)
        assert meta.pubkey == accounts["owner"]

    def test_later_extras_see_earlier_ones(self, gate, accounts):
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        first = Pubkey.unique()
        descriptors = [
            ExtraAccountMeta.fixed(first),
            ExtraAccountMeta.derived([LiteralSeed(b"chain"), AccountKeySeed(4)]),
        ]
        resolved = resolve_metas(descriptors, base, gate, accounts["data"].get)
        assert resolved[1].pubkey == find_program_address([b"chain", first], gate)[0]

    def test_index_out_of_range(self, gate, accounts):
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        descriptor = ExtraAccountMeta.derived([AccountKeySeed(9)])
        with pytest.raises(MalformedRequestError):
            resolve_metas([descriptor], base, gate, accounts["data"].get)

    def test_data_slice_out_of_range(self, gate, accounts):
        base = [accounts["caller"], accounts["token_account"], accounts["mint"], Pubkey.unique()]
        descriptor = ExtraAccountMeta.derived([AccountDataSeed(0, 0, 32)])
        with pytest.raises(InvalidAccountDataError):
            resolve_metas([descriptor], base, gate, accounts["data"].get)


class TestExtraAccountsResolver:
    def test_missing_registry_is_empty(self, gate, accounts):
        resolver = ExtraAccountsResolver(gate, accounts["data"].get)
        assert resolver.resolve(accounts["mint"], Operation.PERMISSIONLESS_THAW) == []

    def test_reads_registry_for_operation(self, gate, accounts):
        mint = accounts["mint"]
        thaw_meta = ExtraAccountMeta.fixed(Pubkey.unique())
        registry, _ = find_extra_metas_address(mint, gate, Operation.PERMISSIONLESS_THAW)
        data = dict(accounts["data"])
        data[registry] = pack_extra_metas([thaw_meta])

        resolver = ExtraAccountsResolver(gate, data.get)
        assert resolver.registry_address(mint, Operation.PERMISSIONLESS_THAW) == registry
        assert resolver.resolve(mint, Operation.PERMISSIONLESS_THAW) == [thaw_meta]
        assert resolver.resolve(mint, Operation.PERMISSIONLESS_FREEZE) == []

    def test_thaw_and_freeze_registries_differ(self, gate):
        mint = Pubkey.unique()
        thaw, _ = find_extra_metas_address(mint, gate, Operation.PERMISSIONLESS_THAW)
        freeze, _ = find_extra_metas_address(mint, gate, Operation.PERMISSIONLESS_FREEZE)
        assert thaw != freeze

    def test_resolve_accounts(self, gate, accounts):
        mint = accounts["mint"]
        target = Pubkey.unique()
        registry, _ = find_extra_metas_address(mint, gate, Operation.PERMISSIONLESS_FREEZE)
        data = dict(accounts["data"])
        data[registry] = pack_extra_metas([ExtraAccountMeta.fixed(target)])

        resolver = ExtraAccountsResolver(gate, data.get)
        metas = resolver.resolve_accounts(
            mint, Operation.PERMISSIONLESS_FREEZE, accounts["caller"], accounts["token_account"]
        )
        assert [m.pubkey for m in metas] == [target]
