"""
The demo scenarios double as end-to-end checks.
"""

from tokenacl.demos import (
    DEMOS,
    jurisdiction_status,
    run_all_demos,
    run_geo_demo,
    run_kyc_demo,
    run_sanctions_demo,
)


def outcomes(rows):
    return [(row["outcome"], row["code"], row["frozen"]) for row in rows]


def test_kyc_demo():
    assert outcomes(run_kyc_demo()) == [
        ("rejected", "gate_denied", True),
        ("ok", None, True),
        ("ok", None, False),
        ("ok", None, True),
        ("ok", None, True),
        ("rejected", "gate_denied", True),
        ("ok", None, False),
    ]


def test_sanctions_demo():
    assert outcomes(run_sanctions_demo()) == [
        ("ok", None, True),
        ("ok", None, False),
        ("rejected", "gate_denied", False),
        ("ok", None, False),
        ("ok", None, True),
        ("rejected", "gate_denied", True),
    ]


def test_geo_demo():
    rows = run_geo_demo()
    assert [row["step"] for row in rows][-3:] == [
        "US holder relocates to KP",
        "watcher freezes relocated holder",
        "relocated holder thaws",
    ]
    assert outcomes(rows) == [
        ("ok", None, True),
        ("ok", None, False),
        ("ok", None, True),
        ("rejected", "gate_denied", True),
        ("ok", None, True),
        ("ok", None, False),
        ("ok", None, True),
        ("rejected", "gate_denied", True),
        ("ok", None, False),
        ("ok", None, True),
        ("rejected", "gate_denied", True),
    ]


def test_jurisdiction_status():
    assert jurisdiction_status("US") == "allowed"
    assert jurisdiction_status("eu") == "allowed"
    assert jurisdiction_status("SG") == "restricted"
    assert jurisdiction_status("KP") == "blocked"
    assert jurisdiction_status("ZZ") == "blocked"


def test_registry():
    assert set(DEMOS) == {"kyc", "sanctions", "geo"}


def test_all_demos_tags_rows():
    rows = run_all_demos()
    counts = {name: sum(1 for row in rows if row["demo"] == name) for name in DEMOS}
    assert counts == {"kyc": 7, "sanctions": 6, "geo": 11}
