"""
Allow-list gate (KYC style).

Thaw is approved when the token account's owner has an allowed,
unexpired record for the mint. Freeze is not offered.
"""

from __future__ import annotations

from typing import List

from tokenacl.manager.resolver import ExtraAccountMeta
from tokenacl.protocol.enums import Operation

from .base import ALLOW_RECORD_META, GateProgram, GateRequest
from .state import find_allow_record_address, read_allow_record


class AllowListGate(GateProgram):
    name = "allow_list"
    SUPPORTED = (Operation.PERMISSIONLESS_THAW,)

    def extra_metas(self, op: Operation) -> List[ExtraAccountMeta]:
        return [ALLOW_RECORD_META]

    def decide(self, op: Operation, request: GateRequest) -> bool:
        if op is not Operation.PERMISSIONLESS_THAW:
            return False
        subject = request.subject()
        info = request.extra(0)
        request.check_record_address(
            info, find_allow_record_address(request.mint.key, subject, request.program_id)[0]
        )
        record = read_allow_record(info, request.program_id)
        if record is None:
            request.ctx.log(f"{subject} is not on the allow list")
            return False
        if not record.allowed:
            request.ctx.log(f"{subject} was removed from the allow list")
            return False
        if record.is_expired(request.now):
            request.ctx.log(f"Allow-list entry for {subject} expired at {record.expires_at}")
            return False
        return True

    def _add_subject(self, ctx, program_id, record_info, mint, subject, args) -> None:
        self._upsert_allow_record(ctx, program_id, record_info, mint, subject, args)
