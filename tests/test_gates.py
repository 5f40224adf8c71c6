"""
Tests for the reference gates, driven through the Manager.
"""

import pytest

from tokenacl.gates import AllowListGate, BlockListGate, HybridSanctionsGate
from tokenacl.gates import instructions as gate_ix
from tokenacl.ledger.accounts import AccountMeta, Instruction
from tokenacl.ledger.keys import Keypair
from tokenacl.protocol.discriminators import tag_for
from tokenacl.protocol.enums import AccessTier, BlockReason, ListKind, Operation
from tokenacl.protocol.errors import (
    AccessDeniedError,
    AlreadyInitializedError,
    GateDeniedError,
    InvalidAccountDataError,
    MalformedRequestError,
    UnauthorizedError,
    UnknownOperationError,
)


def assert_denied(action):
    with pytest.raises(GateDeniedError) as exc_info:
        action()
    assert isinstance(exc_info.value.__cause__, AccessDeniedError)


class TestAllowListGate:
    def test_no_record_denied(self, make_world):
        world = make_world(AllowListGate())
        assert_denied(lambda: world.client.thaw_permissionless(world.holder, world.account, world.mint))
        assert world.frozen()

    def test_allowed_subject_thaws(self, make_world):
        world = make_world(AllowListGate())
        world.client.allow_subject(
            world.gate, world.mint, world.holder.pubkey, world.operator, tier=AccessTier.ENHANCED
        )
        record = world.client.get_allow_record(world.gate, world.mint, world.holder.pubkey)
        assert record.allowed
        assert record.access_tier is AccessTier.ENHANCED
        assert record.added_at == world.client.ledger.unix_timestamp

        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()

    def test_record_of_another_owner_does_not_help(self, make_world):
        world = make_world(AllowListGate())
        world.client.allow_subject(world.gate, world.mint, Keypair.generate().pubkey, world.operator)
        assert_denied(lambda: world.client.thaw_permissionless(world.holder, world.account, world.mint))

    def test_expiry(self, make_world):
        world = make_world(AllowListGate())
        expires_at = world.client.ledger.unix_timestamp + 100
        world.client.allow_subject(
            world.gate, world.mint, world.holder.pubkey, world.operator, expires_at=expires_at
        )
        world.client.ledger.advance_clock(100)
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        world.client.freeze(world.issuer, world.account, world.mint)

        world.client.ledger.advance_clock(1)
        assert_denied(lambda: world.client.thaw_permissionless(world.holder, world.account, world.mint))
        assert world.frozen()

    def test_remove_keeps_record_and_re_enable(self, make_world):
        world = make_world(AllowListGate())
        client = world.client
        client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        client.remove_subject(world.gate, world.mint, world.holder.pubkey, world.operator, ListKind.ALLOW)

        record = client.get_allow_record(world.gate, world.mint, world.holder.pubkey)
        assert record is not None and not record.allowed
        assert_denied(lambda: client.thaw_permissionless(world.holder, world.account, world.mint))

        client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()

    def test_freeze_not_offered(self, make_world):
        world = make_world(AllowListGate(), thaw=True, freeze=True)
        world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert_denied(lambda: world.client.freeze_permissionless(world.holder, world.account, world.mint))
        assert not world.frozen()


class TestBlockListGate:
    def test_unlisted_owner_thaws(self, make_world):
        world = make_world(BlockListGate())
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()

    def test_blocked_owner_frozen_and_kept_frozen(self, make_world):
        world = make_world(BlockListGate(), thaw=True, freeze=True)
        client = world.client
        client.thaw_permissionless(world.holder, world.account, world.mint)

        watcher = Keypair.generate()
        assert_denied(lambda: client.freeze_permissionless(watcher, world.account, world.mint))

        client.block_subject(world.gate, world.mint, world.holder.pubkey, world.operator, reason=BlockReason.RISK)
        assert client.get_block_record(world.gate, world.mint, world.holder.pubkey).reason is BlockReason.RISK

        client.freeze_permissionless(watcher, world.account, world.mint)
        assert world.frozen()
        assert_denied(lambda: client.thaw_permissionless(world.holder, world.account, world.mint))

    def test_unblock(self, make_world):
        world = make_world(BlockListGate())
        client = world.client
        client.block_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        assert_denied(lambda: client.thaw_permissionless(world.holder, world.account, world.mint))

        client.remove_subject(world.gate, world.mint, world.holder.pubkey, world.operator, ListKind.BLOCK)
        client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()


class TestHybridSanctionsGate:
    def test_thaw_needs_allow_entry(self, make_world):
        world = make_world(HybridSanctionsGate(), thaw=True, freeze=True)
        assert_denied(lambda: world.client.thaw_permissionless(world.holder, world.account, world.mint))

        world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator, hybrid=True)
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()

    def test_clean_owner_cannot_be_frozen(self, make_world):
        world = make_world(HybridSanctionsGate(), thaw=True, freeze=True)
        world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator, hybrid=True)
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert_denied(
            lambda: world.client.freeze_permissionless(Keypair.generate(), world.account, world.mint)
        )

    def test_block_wins_over_allow(self, make_world):
        world = make_world(HybridSanctionsGate(), thaw=True, freeze=True)
        client = world.client
        client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator, hybrid=True)
        client.block_subject(world.gate, world.mint, world.holder.pubkey, world.operator, hybrid=True)

        assert_denied(lambda: client.thaw_permissionless(world.holder, world.account, world.mint))
        client.thaw(world.issuer, world.account, world.mint)
        client.freeze_permissionless(Keypair.generate(), world.account, world.mint)
        assert world.frozen()

    def test_expired_allow_entry(self, make_world):
        world = make_world(HybridSanctionsGate(), thaw=True, freeze=True)
        expires_at = world.client.ledger.unix_timestamp + 10
        world.client.allow_subject(
            world.gate, world.mint, world.holder.pubkey, world.operator, expires_at=expires_at, hybrid=True
        )
        world.client.ledger.advance_clock(11)
        assert_denied(lambda: world.client.thaw_permissionless(world.holder, world.account, world.mint))

    def test_add_needs_list_kind(self, make_world):
        world = make_world(HybridSanctionsGate(), thaw=True, freeze=True)
        with pytest.raises(MalformedRequestError):
            world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)


class TestGateAdministration:
    def test_initialize_twice(self, make_world):
        world = make_world(AllowListGate())
        with pytest.raises(AlreadyInitializedError):
            world.client.initialize_gate(world.gate, world.mint, world.operator)

    def test_add_requires_authority(self, make_world):
        world = make_world(AllowListGate())
        with pytest.raises(UnauthorizedError):
            world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.holder)
        assert world.client.get_allow_record(world.gate, world.mint, world.holder.pubkey) is None

    def test_remove_requires_authority(self, make_world):
        world = make_world(AllowListGate())
        world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        with pytest.raises(UnauthorizedError):
            world.client.remove_subject(world.gate, world.mint, world.holder.pubkey, world.issuer, ListKind.ALLOW)

    def test_remove_missing_record(self, make_world):
        world = make_world(BlockListGate())
        with pytest.raises(InvalidAccountDataError):
            world.client.remove_subject(world.gate, world.mint, world.holder.pubkey, world.operator, ListKind.BLOCK)

    def test_admin_needs_initialized_gate(self, make_world):
        world = make_world(AllowListGate(), initialize_gate=False)
        with pytest.raises(InvalidAccountDataError):
            world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)

    def test_transfer_authority(self, make_world):
        world = make_world(AllowListGate())
        successor = Keypair.generate()
        ix = gate_ix.transfer_authority(world.gate, world.mint, world.operator.pubkey, successor.pubkey)
        world.client.send([ix], [world.operator])

        with pytest.raises(UnauthorizedError):
            world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, world.operator)
        world.client.allow_subject(world.gate, world.mint, world.holder.pubkey, successor)
        world.client.thaw_permissionless(world.holder, world.account, world.mint)
        assert not world.frozen()


class TestDirectCalls:
    def test_empty_data(self, make_world):
        world = make_world(AllowListGate())
        with pytest.raises(UnknownOperationError):
            world.client.send([Instruction(world.gate, [])], [])

    def test_unsupported_interop_call(self, make_world):
        world = make_world(AllowListGate())
        ix = Instruction(world.gate, [], tag_for(Operation.PERMISSIONLESS_FREEZE))
        with pytest.raises(AccessDeniedError):
            world.client.send([ix], [])

    def test_interop_call_needs_accounts(self, make_world):
        world = make_world(AllowListGate())
        ix = Instruction(world.gate, [AccountMeta.readonly(world.account)], tag_for(Operation.PERMISSIONLESS_THAW))
        with pytest.raises(MalformedRequestError):
            world.client.send([ix], [])
