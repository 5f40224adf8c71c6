"""
Shared fixtures: a ledger with the token program and the Manager deployed,
plus a helper that wires a mint to a gate.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import pytest

from tokenacl.client import TokenAclClient
from tokenacl.core.settings import ManagerSettings, RuntimeSettings, TokenAclSettings
from tokenacl.gates.base import GateProgram
from tokenacl.ledger.keys import Keypair, Pubkey

NOW = 1_700_000_000


@dataclass
class World:
    """One mint managed by the Manager, bound to one gate, with one holder account."""

    client: TokenAclClient
    issuer: Keypair
    operator: Keypair
    holder: Keypair
    mint: Pubkey
    gate: Pubkey
    account: Pubkey

    def frozen(self) -> bool:
        return self.client.is_frozen(self.account)


def make_settings(max_invoke_depth: int = 4, max_extra_accounts: int = 10) -> TokenAclSettings:
    return TokenAclSettings(
        runtime=RuntimeSettings(max_invoke_depth=max_invoke_depth, clock_override=None),
        manager=ManagerSettings(max_extra_accounts=max_extra_accounts),
    )


@pytest.fixture
def client() -> TokenAclClient:
    return TokenAclClient.bootstrap(settings=make_settings(), unix_timestamp=NOW)


@pytest.fixture
def make_world(client) -> Callable[..., World]:
    """
    Factory: deploy `gate_program`, create a default-frozen mint, hand its
    freeze authority to the Manager and bind the gate.
    """

    def _make(
        gate_program: GateProgram,
        *,
        thaw: bool = True,
        freeze: bool = False,
        initialize_gate: bool = True,
        default_frozen: bool = True,
        gate_id: Optional[Pubkey] = None,
    ) -> World:
        issuer, operator, holder, mint_kp = (Keypair.generate() for _ in range(4))
        gate = client.deploy_gate(gate_program, gate_id)
        client.create_mint(mint_kp, issuer.pubkey, default_frozen=default_frozen)
        client.create_config(issuer, mint_kp.pubkey, gate)
        if initialize_gate:
            client.initialize_gate(gate, mint_kp.pubkey, operator)
        if thaw or freeze:
            client.set_flags(issuer, mint_kp.pubkey, thaw=thaw, freeze=freeze)
        account = client.create_token_account(holder.pubkey, mint_kp.pubkey, holder)
        return World(
            client=client,
            issuer=issuer,
            operator=operator,
            holder=holder,
            mint=mint_kp.pubkey,
            gate=gate,
            account=account,
        )

    return _make
