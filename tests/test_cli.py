"""
Tests for the tokenacl command line.
"""

import json

import pytest

from tokenacl.cli import build_parser, main
from tokenacl.ledger.derivation import find_program_address
from tokenacl.ledger.keys import Pubkey
from tokenacl.manager.state import MANAGER_PROGRAM_ID, MINT_CONFIG_SEED
from tokenacl.protocol.discriminators import tag_for
from tokenacl.protocol.enums import Operation


def run_json(capsys, *argv):
    main([*argv, "--output", "json"])
    return json.loads(capsys.readouterr().out)


class TestTags:
    def test_lists_manager_and_gate_tags(self, capsys):
        rows = run_json(capsys, "tags")
        by_op = {row["operation"]: row["tag"] for row in rows}
        assert by_op["thaw_permissionless"] == tag_for(Operation.PERMISSIONLESS_THAW).hex()
        assert by_op["gate:initialize"] == "00"
        assert len(by_op) == len(rows)

    def test_table_output(self, capsys):
        main(["tags"])
        out = capsys.readouterr().out
        assert out.splitlines()[0].split() == ["OPERATION", "TAG"]


class TestDerive:
    def test_mint_config_address(self, capsys):
        mint = Pubkey.unique()
        [row] = run_json(capsys, "derive", MINT_CONFIG_SEED.decode(), f"key:{mint}")
        expected, bump = find_program_address([MINT_CONFIG_SEED, mint], MANAGER_PROGRAM_ID)
        assert row["address"] == str(expected)
        assert row["bump"] == bump
        assert row["program_id"] == str(MANAGER_PROGRAM_ID)

    def test_hex_seed_and_program_id(self, capsys):
        program_id = Pubkey.unique()
        [row] = run_json(capsys, "derive", "hex:00ff", "--program-id", str(program_id))
        assert row["address"] == str(find_program_address([b"\x00\xff"], program_id)[0])

    def test_bad_seed(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["derive", "hex:zz"])
        assert exc_info.value.code == 1
        assert "Derivation failed" in capsys.readouterr().err


class TestDemo:
    def test_kyc_demo(self, capsys):
        rows = run_json(capsys, "demo", "kyc")
        assert rows[0]["code"] == "gate_denied"
        assert rows[2]["outcome"] == "ok" and rows[2]["frozen"] is False

    def test_geo_demo_table(self, capsys):
        main(["demo", "geo"])
        lines = capsys.readouterr().out.splitlines()
        assert lines[0].split()[:2] == ["STEP", "OUTCOME"]
        assert any("relocates to KP" in line for line in lines)

    def test_all_demos(self, capsys):
        rows = run_json(capsys, "demo", "all")
        assert rows[0]["demo"] == "kyc" and rows[0]["step"] == "thaw before KYC"
        assert rows[-1]["demo"] == "geo"
        assert {row["demo"] for row in rows} == {"kyc", "sanctions", "geo"}

    def test_unknown_demo(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["demo", "nope"])


def test_no_command_prints_help(capsys):
    with pytest.raises(SystemExit):
        main([])
    assert "usage: tokenacl" in capsys.readouterr().out
