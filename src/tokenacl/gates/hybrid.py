"""
Hybrid sanctions gate.

Keeps both lists for one mint. The block list always wins: a blocked owner
is never thawed even with a valid allow-list entry, and can always be
frozen. Thaw otherwise requires an allowed, unexpired entry.

Thaw extras: block record, allow record. Freeze extras: block record.
"""

from __future__ import annotations

from typing import List

from tokenacl.manager.resolver import ExtraAccountMeta
from tokenacl.protocol.enums import ListKind, Operation
from tokenacl.protocol.errors import MalformedRequestError

from .base import ALLOW_RECORD_META, BLOCK_RECORD_META, GateProgram, GateRequest
from .block_list import is_blocked
from .state import find_allow_record_address, read_allow_record


class HybridSanctionsGate(GateProgram):
    name = "hybrid_sanctions"
    SUPPORTED = (Operation.PERMISSIONLESS_THAW, Operation.PERMISSIONLESS_FREEZE)

    def extra_metas(self, op: Operation) -> List[ExtraAccountMeta]:
        if op is Operation.PERMISSIONLESS_THAW:
            return [BLOCK_RECORD_META, ALLOW_RECORD_META]
        return [BLOCK_RECORD_META]

    def decide(self, op: Operation, request: GateRequest) -> bool:
        blocked = is_blocked(request, 0)
        if op is Operation.PERMISSIONLESS_FREEZE:
            return blocked
        if blocked:
            return False

        subject = request.subject()
        info = request.extra(1)
        request.check_record_address(
            info, find_allow_record_address(request.mint.key, subject, request.program_id)[0]
        )
        record = read_allow_record(info, request.program_id)
        if record is None or not record.is_active(request.now):
            request.ctx.log(f"{subject} has no active allow-list entry")
            return False
        return True

    def _add_subject(self, ctx, program_id, record_info, mint, subject, args) -> None:
        if not args:
            raise MalformedRequestError("Hybrid add-subject needs a list kind")
        try:
            kind = ListKind(args[0])
        except ValueError:
            raise MalformedRequestError(f"Unknown list kind {args[0]}") from None
        if kind is ListKind.ALLOW:
            self._upsert_allow_record(ctx, program_id, record_info, mint, subject, args[1:])
        else:
            self._upsert_block_record(ctx, program_id, record_info, mint, subject, args[1:])
