"""
Tests for MintConfig operations.
"""

import pytest

from tokenacl.ledger.keys import Pubkey
from tokenacl.manager import config_store
from tokenacl.manager.state import MintConfig
from tokenacl.protocol.enums import Operation
from tokenacl.protocol.errors import (
    AlreadyInitializedError,
    GateNotConfiguredError,
    UnauthorizedError,
)


@pytest.fixture
def authority():
    return Pubkey.unique()


@pytest.fixture
def config(authority):
    return config_store.initialize_config(
        Pubkey.unique(), authority, authority_signed=True, exists=False, bump=255
    )


class TestInitialize:
    def test_defaults(self, config, authority):
        assert config.authority == authority
        assert not config.gate_configured
        assert not config.enable_permissionless_thaw
        assert not config.enable_permissionless_freeze
        assert config.bump == 255

    def test_with_gate(self, authority):
        gate = Pubkey.unique()
        config = config_store.initialize_config(
            Pubkey.unique(), authority, authority_signed=True, exists=False, bump=1, gate=gate
        )
        assert config.gate_address == gate

    def test_already_initialized(self, authority):
        with pytest.raises(AlreadyInitializedError):
            config_store.initialize_config(
                Pubkey.unique(), authority, authority_signed=True, exists=True, bump=1
            )

    def test_authority_must_sign(self, authority):
        with pytest.raises(UnauthorizedError):
            config_store.initialize_config(
                Pubkey.unique(), authority, authority_signed=False, exists=False, bump=1
            )


class TestMutations:
    def test_set_gate(self, config, authority):
        gate = Pubkey.unique()
        config_store.set_gate(config, authority, gate, signed=True)
        assert config.gate_address == gate

    def test_unset_gate(self, config, authority):
        config_store.set_gate(config, authority, Pubkey.unique(), signed=True)
        config_store.set_gate(config, authority, Pubkey.default(), signed=True)
        assert not config.gate_configured

    def test_non_authority_cannot_set_gate(self, config):
        with pytest.raises(UnauthorizedError):
            config_store.set_gate(config, Pubkey.unique(), Pubkey.unique(), signed=True)

    def test_unsigned_authority_rejected(self, config, authority):
        with pytest.raises(UnauthorizedError):
            config_store.set_gate(config, authority, Pubkey.unique(), signed=False)

    def test_enable_flag_requires_gate(self, config, authority):
        with pytest.raises(GateNotConfiguredError):
            config_store.set_flags(config, authority, thaw=True, signed=True)

    def test_disable_without_gate(self, config, authority):
        config_store.set_flags(config, authority, thaw=False, freeze=False, signed=True)
        assert not config.enable_permissionless_thaw

    def test_none_leaves_flag(self, config, authority):
        config_store.set_gate(config, authority, Pubkey.unique(), signed=True)
        config_store.set_flags(config, authority, thaw=True, signed=True)
        config_store.set_flags(config, authority, freeze=True, signed=True)
        assert config.enable_permissionless_thaw
        assert config.enable_permissionless_freeze

    def test_transfer_authority(self, config, authority):
        new_authority = Pubkey.unique()
        config_store.transfer_authority(config, authority, new_authority, signed=True)
        assert config.authority == new_authority
        with pytest.raises(UnauthorizedError):
            config_store.set_gate(config, authority, Pubkey.unique(), signed=True)


class TestReachability:
    """A permissionless action needs both its flag and a bound gate."""

    @pytest.mark.parametrize("thaw,gate,expected", [
        (False, False, False),
        (True, False, False),
        (False, True, False),
        (True, True, True),
    ])
    def test_thaw_reachability(self, thaw, gate, expected):
        config = MintConfig(
            mint=Pubkey.unique(),
            authority=Pubkey.unique(),
            gate_address=Pubkey.unique() if gate else Pubkey.default(),
            enable_permissionless_thaw=thaw,
        )
        assert config.permissionless_enabled(Operation.PERMISSIONLESS_THAW) is expected

    def test_privileged_ops_are_not_permissionless(self):
        config = MintConfig(
            mint=Pubkey.unique(),
            authority=Pubkey.unique(),
            gate_address=Pubkey.unique(),
            enable_permissionless_thaw=True,
        )
        assert not config.permissionless_enabled(Operation.THAW)
