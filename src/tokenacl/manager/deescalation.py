"""
Permission de-escalation for gate calls.

Every account handed to a gate is forwarded read-only and without a
signature, whatever the caller or the registry asked for. The runtime would
refuse any later attempt by the gate to write or sign with these accounts.
"""

from __future__ import annotations

from typing import Iterable, List

from tokenacl.ledger.accounts import AccountMeta
from tokenacl.protocol.errors import PrivilegeEscalationError


def deescalate(metas: Iterable[AccountMeta]) -> List[AccountMeta]:
    return [meta.weakened() for meta in metas]


def assert_deescalated(metas: Iterable[AccountMeta]) -> None:
    """Last check before a gate call; raising here means a bug in the Manager."""
    for meta in metas:
        if meta.is_signer or meta.is_writable:
            raise PrivilegeEscalationError(
                f"Refusing to forward {meta.pubkey} to a gate with signer/writable privileges"
            )
