"""
Runnable end-to-end scenarios.

Each demo builds a fresh ledger, walks through a short story and returns
the steps it took as plain dicts, so the CLI can print them as a table or
JSON and tests can assert on them.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from tokenacl.client import TokenAclClient
from tokenacl.gates import AllowListGate, HybridSanctionsGate
from tokenacl.ledger.keys import Keypair
from tokenacl.protocol.enums import AccessTier, BlockReason, ListKind
from tokenacl.protocol.errors import TokenAclError

logger = logging.getLogger(__name__)

DEMO_CLOCK = 1_700_000_000


@dataclass
class DemoStep:
    step: str
    outcome: str
    code: Optional[str] = None
    frozen: Optional[bool] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class _Recorder:
    def __init__(self, client: TokenAclClient) -> None:
        self._client = client
        self.steps: List[DemoStep] = []

    def run(self, step: str, action: Callable[[], Any], watch=None) -> DemoStep:
        """Run one action; a TokenAclError is recorded as a rejection, not raised."""
        try:
            action()
            outcome, code = "ok", None
        except TokenAclError as ex:
            outcome, code = "rejected", ex.code.value
            logger.info("Demo step '%s' rejected: %s", step, ex)
        frozen = self._client.is_frozen(watch) if watch is not None else None
        result = DemoStep(step=step, outcome=outcome, code=code, frozen=frozen)
        self.steps.append(result)
        return result


def run_kyc_demo() -> List[Dict[str, Any]]:
    """
    Allow-list gate: mint M, issuer A, gate G, holder S.

    S's account starts frozen and can only be thawed by anyone once G's
    operator has allowed S.
    """
    client = TokenAclClient.bootstrap(unix_timestamp=DEMO_CLOCK)
    issuer, operator, holder, mint_kp = (Keypair.generate() for _ in range(4))
    mint = mint_kp.pubkey

    gate = client.deploy_gate(AllowListGate())
    client.create_mint(mint_kp, issuer.pubkey, default_frozen=True)
    client.create_config(issuer, mint)
    client.initialize_gate(gate, mint, operator)
    client.set_gate(issuer, mint, gate)
    client.set_flags(issuer, mint, thaw=True)
    account = client.create_token_account(holder.pubkey, mint, holder)

    rec = _Recorder(client)
    rec.run("thaw before KYC", lambda: client.thaw_permissionless(holder, account, mint), account)
    rec.run(
        "operator allows holder",
        lambda: client.allow_subject(
            gate, mint, holder.pubkey, operator,
            tier=AccessTier.ENHANCED, expires_at=DEMO_CLOCK + 86_400,
        ),
        account,
    )
    rec.run("thaw after KYC", lambda: client.thaw_permissionless(holder, account, mint), account)
    rec.run("issuer freezes", lambda: client.freeze(issuer, account, mint), account)
    rec.run(
        "operator revokes holder",
        lambda: client.remove_subject(gate, mint, holder.pubkey, operator, ListKind.ALLOW),
        account,
    )
    rec.run("thaw after revocation", lambda: client.thaw_permissionless(holder, account, mint), account)
    rec.run("issuer thaws", lambda: client.thaw(issuer, account, mint), account)
    return [s.to_dict() for s in rec.steps]


def run_sanctions_demo() -> List[Dict[str, Any]]:
    """
    Hybrid gate: a KYC'd holder is later sanctioned. Anyone may then freeze
    the account, and the valid allow-list entry no longer thaws it.
    """
    client = TokenAclClient.bootstrap(unix_timestamp=DEMO_CLOCK)
    issuer, operator, holder, watcher, mint_kp = (Keypair.generate() for _ in range(5))
    mint = mint_kp.pubkey

    gate = client.deploy_gate(HybridSanctionsGate())
    client.create_mint(mint_kp, issuer.pubkey, default_frozen=True)
    client.create_config(issuer, mint, gate)
    client.initialize_gate(gate, mint, operator)
    client.set_flags(issuer, mint, thaw=True, freeze=True)
    account = client.create_token_account(holder.pubkey, mint, holder)

    rec = _Recorder(client)
    rec.run(
        "operator allows holder",
        lambda: client.allow_subject(gate, mint, holder.pubkey, operator, hybrid=True),
        account,
    )
    rec.run("holder thaws", lambda: client.thaw_permissionless(holder, account, mint), account)
    rec.run("watcher freezes clean holder", lambda: client.freeze_permissionless(watcher, account, mint), account)
    rec.run(
        "operator sanctions holder",
        lambda: client.block_subject(
            gate, mint, holder.pubkey, operator, reason=BlockReason.SANCTIONS, hybrid=True
        ),
        account,
    )
    rec.run("watcher freezes sanctioned holder", lambda: client.freeze_permissionless(watcher, account, mint), account)
    rec.run("holder tries to thaw", lambda: client.thaw_permissionless(holder, account, mint), account)
    return [s.to_dict() for s in rec.steps]


# Jurisdiction -> (status, note). A country missing from the table is blocked.
JURISDICTION_RULES: Dict[str, Tuple[str, str]] = {
    "US": ("allowed", "Fully compliant with SEC regulations"),
    "EU": ("allowed", "MiCA compliant"),
    "SG": ("restricted", "Accredited investors only"),
    "CN": ("blocked", "Regulatory restrictions"),
    "KP": ("blocked", "International sanctions"),
}


def jurisdiction_status(country: str) -> str:
    status, _ = JURISDICTION_RULES.get(country.upper(), ("blocked", "Not supported"))
    return status


def record_jurisdiction(
    client: TokenAclClient,
    gate,
    mint,
    subject,
    operator: Keypair,
    country: str,
    *,
    accredited: bool = False,
) -> str:
    """
    Turn a verified location into hybrid-gate records.

    Blocked countries get a block entry. Allowed countries, and restricted
    ones for accredited subjects, get an allow entry. A retail subject in a
    restricted country gets nothing, so its thaws stay denied.
    """
    status = jurisdiction_status(country)
    if status == "blocked":
        client.block_subject(gate, mint, subject, operator, reason=BlockReason.COMPLIANCE, hybrid=True)
    elif status == "allowed":
        client.allow_subject(gate, mint, subject, operator, hybrid=True)
    elif accredited:
        client.allow_subject(gate, mint, subject, operator, tier=AccessTier.INSTITUTIONAL, hybrid=True)
    logger.info("Recorded %s for %s (%s)", status, subject, country)
    return status


def run_geo_demo() -> List[Dict[str, Any]]:
    """
    Hybrid gate driven by jurisdiction: holders in allowed countries thaw
    themselves, blocked countries stay frozen, restricted countries need
    accreditation, and a holder who relocates to a blocked country can be
    frozen by anyone.
    """
    client = TokenAclClient.bootstrap(unix_timestamp=DEMO_CLOCK)
    issuer, operator, watcher, mint_kp = (Keypair.generate() for _ in range(4))
    mint = mint_kp.pubkey

    gate = client.deploy_gate(HybridSanctionsGate())
    client.create_mint(mint_kp, issuer.pubkey, default_frozen=True)
    client.create_config(issuer, mint, gate)
    client.initialize_gate(gate, mint, operator)
    client.set_flags(issuer, mint, thaw=True, freeze=True)

    rec = _Recorder(client)
    holders = {}
    for label, country, accredited in (
        ("US holder", "US", False),
        ("CN holder", "CN", False),
        ("accredited SG holder", "SG", True),
        ("retail SG holder", "SG", False),
    ):
        holder = Keypair.generate()
        account = client.create_token_account(holder.pubkey, mint, holder)
        rec.run(
            f"verify {label} in {country}",
            lambda: record_jurisdiction(
                client, gate, mint, holder.pubkey, operator, country, accredited=accredited
            ),
            account,
        )
        rec.run(f"{label} thaws", lambda: client.thaw_permissionless(holder, account, mint), account)
        holders[label] = (holder, account)

    relocated, relocated_account = holders["US holder"]
    rec.run(
        "US holder relocates to KP",
        lambda: record_jurisdiction(client, gate, mint, relocated.pubkey, operator, "KP"),
        relocated_account,
    )
    rec.run(
        "watcher freezes relocated holder",
        lambda: client.freeze_permissionless(watcher, relocated_account, mint),
        relocated_account,
    )
    rec.run(
        "relocated holder thaws",
        lambda: client.thaw_permissionless(relocated, relocated_account, mint),
        relocated_account,
    )
    return [s.to_dict() for s in rec.steps]


DEMOS: Dict[str, Callable[[], List[Dict[str, Any]]]] = {
    "kyc": run_kyc_demo,
    "sanctions": run_sanctions_demo,
    "geo": run_geo_demo,
}


def run_all_demos() -> List[Dict[str, Any]]:
    """Every demo in turn, each row tagged with the demo it came from."""
    return [{"demo": name, **row} for name, demo in DEMOS.items() for row in demo()]
