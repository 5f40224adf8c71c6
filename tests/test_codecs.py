"""
Tests for the fixed-width account codecs.
"""

import pytest

from tokenacl.gates.state import AllowListRecord, BlockListRecord, GateConfig
from tokenacl.ledger.keys import Pubkey
from tokenacl.ledger.token import Mint, TokenAccount
from tokenacl.manager.resolver import (
    AccountDataSeed,
    AccountKeySeed,
    ExtraAccountMeta,
    LiteralSeed,
    MetaKind,
    pack_extra_metas,
    unpack_extra_metas,
)
from tokenacl.manager.state import MintConfig
from tokenacl.protocol.enums import AccessTier, BlockReason
from tokenacl.protocol.errors import InvalidAccountDataError


class TestMintConfig:
    def test_roundtrip(self):
        config = MintConfig(
            mint=Pubkey.unique(),
            authority=Pubkey.unique(),
            gate_address=Pubkey.unique(),
            enable_permissionless_thaw=True,
            enable_permissionless_freeze=False,
            bump=254,
        )
        data = config.to_bytes()
        assert len(data) == MintConfig.LEN == 100
        assert MintConfig.from_bytes(data) == config

    def test_unset_gate(self):
        config = MintConfig(mint=Pubkey.unique(), authority=Pubkey.unique())
        assert not config.gate_configured
        assert config.to_dict()["gateAddress"] is None

    def test_wrong_tag(self):
        data = bytearray(MintConfig(mint=Pubkey.unique(), authority=Pubkey.unique()).to_bytes())
        data[0] = 0x02
        with pytest.raises(InvalidAccountDataError):
            MintConfig.from_bytes(bytes(data))

    def test_wrong_length(self):
        data = MintConfig(mint=Pubkey.unique(), authority=Pubkey.unique()).to_bytes()
        with pytest.raises(InvalidAccountDataError):
            MintConfig.from_bytes(data[:-1])

    def test_flag_must_be_boolean(self):
        data = bytearray(MintConfig(mint=Pubkey.unique(), authority=Pubkey.unique()).to_bytes())
        data[97] = 2
        with pytest.raises(InvalidAccountDataError):
            MintConfig.from_bytes(bytes(data))


class TestGateState:
    def test_gate_config_roundtrip(self):
        config = GateConfig(authority=Pubkey.unique(), mint=Pubkey.unique(), bump=7)
        assert GateConfig.from_bytes(config.to_bytes()) == config

    def test_allow_record_roundtrip_with_expiry(self):
        record = AllowListRecord(
            mint=Pubkey.unique(),
            subject=Pubkey.unique(),
            allowed=True,
            access_tier=AccessTier.INSTITUTIONAL,
            added_at=1_700_000_000,
            expires_at=1_800_000_000,
            bump=200,
        )
        assert AllowListRecord.from_bytes(record.to_bytes()) == record

    def test_allow_record_without_expiry(self):
        record = AllowListRecord(mint=Pubkey.unique(), subject=Pubkey.unique(), added_at=5)
        decoded = AllowListRecord.from_bytes(record.to_bytes())
        assert decoded.expires_at is None
        assert not decoded.is_expired(10**12)

    def test_expiry_is_strict(self):
        record = AllowListRecord(mint=Pubkey.unique(), subject=Pubkey.unique(), expires_at=100)
        assert not record.is_expired(100)
        assert record.is_expired(101)

    def test_block_record_roundtrip(self):
        record = BlockListRecord(
            mint=Pubkey.unique(),
            subject=Pubkey.unique(),
            blocked=True,
            reason=BlockReason.RISK,
            added_at=42,
            bump=3,
        )
        assert BlockListRecord.from_bytes(record.to_bytes()) == record

    def test_record_tags_not_interchangeable(self):
        record = BlockListRecord(mint=Pubkey.unique(), subject=Pubkey.unique())
        with pytest.raises(InvalidAccountDataError):
            AllowListRecord.from_bytes(record.to_bytes())

    def test_unknown_tier(self):
        data = bytearray(AllowListRecord(mint=Pubkey.unique(), subject=Pubkey.unique()).to_bytes())
        data[66] = 9
        with pytest.raises(InvalidAccountDataError):
            AllowListRecord.from_bytes(bytes(data))


class TestTokenState:
    def test_mint_roundtrip(self):
        mint = Mint(freeze_authority=Pubkey.unique(), default_frozen=True)
        assert Mint.from_bytes(mint.to_bytes()) == mint

    def test_mint_without_freeze_authority(self):
        assert Mint.from_bytes(Mint(freeze_authority=None).to_bytes()).freeze_authority is None

    def test_token_account_owner_offset(self):
        owner = Pubkey.unique()
        data = TokenAccount(mint=Pubkey.unique(), owner=owner).to_bytes()
        assert data[TokenAccount.OWNER_OFFSET : TokenAccount.OWNER_OFFSET + 32] == owner.raw

    def test_mint_is_not_token_account(self):
        with pytest.raises(InvalidAccountDataError):
            TokenAccount.from_bytes(Mint(freeze_authority=None).to_bytes())


class TestExtraAccountMetas:
    def test_registry_roundtrip(self):
        metas = [
            ExtraAccountMeta.fixed(Pubkey.unique(), writable=True),
            ExtraAccountMeta.derived([LiteralSeed(b"allow"), AccountKeySeed(2), AccountDataSeed(1, 33, 32)]),
            ExtraAccountMeta.from_account_data(1, 33, signer=True),
        ]
        data = pack_extra_metas(metas)
        assert len(data) == 2 + 3 * ExtraAccountMeta.LEN
        assert unpack_extra_metas(data) == metas

    def test_seeds_roundtrip(self):
        seeds = [LiteralSeed(b"block"), AccountKeySeed(2), AccountDataSeed(1, 33, 32)]
        meta = ExtraAccountMeta.derived(seeds)
        assert meta.kind is MetaKind.DERIVED
        assert meta.seeds() == seeds

    def test_seeds_must_fit(self):
        with pytest.raises(ValueError):
            ExtraAccountMeta.derived([LiteralSeed(b"x" * 31)])

    def test_empty_registry(self):
        assert unpack_extra_metas(pack_extra_metas([])) == []

    def test_count_mismatch(self):
        data = pack_extra_metas([ExtraAccountMeta.fixed(Pubkey.unique())])
        with pytest.raises(InvalidAccountDataError):
            unpack_extra_metas(data[:-1])

    def test_wrong_tag(self):
        with pytest.raises(InvalidAccountDataError):
            unpack_extra_metas(b"\x31\x00")

    def test_unknown_kind(self):
        data = bytearray(pack_extra_metas([ExtraAccountMeta.fixed(Pubkey.unique())]))
        data[2] = 7
        with pytest.raises(InvalidAccountDataError):
            unpack_extra_metas(bytes(data))


class TestRecordViews:
    def test_allow_record_dict(self):
        record = AllowListRecord(
            mint=Pubkey.unique(),
            subject=Pubkey.unique(),
            access_tier=AccessTier.BASIC,
            added_at=0,
        )
        view = record.to_dict()
        assert view["subject"] == str(record.subject)
        assert view["accessTier"] == "basic"
        assert view["addedAt"].startswith("1970-01-01T00:00:00")
        assert view["expiresAt"] is None

    def test_block_record_dict(self):
        record = BlockListRecord(mint=Pubkey.unique(), subject=Pubkey.unique(), reason=BlockReason.COMPLIANCE)
        view = record.to_dict()
        assert view["blocked"] is True
        assert view["reason"] == "compliance"
