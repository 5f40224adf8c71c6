"""
Block-list gate (sanctions style).

Freeze is approved for owners with a blocked record; thaw for everyone
else, including owners with no record at all.
"""

from __future__ import annotations

from typing import List

from tokenacl.manager.resolver import ExtraAccountMeta
from tokenacl.protocol.enums import Operation

from .base import BLOCK_RECORD_META, GateProgram, GateRequest
from .state import find_block_record_address, read_block_record


def is_blocked(request: GateRequest, index: int) -> bool:
    """Whether the block record at extras[index] marks the token owner as blocked."""
    subject = request.subject()
    info = request.extra(index)
    request.check_record_address(
        info, find_block_record_address(request.mint.key, subject, request.program_id)[0]
    )
    record = read_block_record(info, request.program_id)
    blocked = record is not None and record.blocked
    if blocked:
        request.ctx.log(f"{subject} is blocked ({record.reason.name.lower()})")
    return blocked


class BlockListGate(GateProgram):
    name = "block_list"
    SUPPORTED = (Operation.PERMISSIONLESS_THAW, Operation.PERMISSIONLESS_FREEZE)

    def extra_metas(self, op: Operation) -> List[ExtraAccountMeta]:
        return [BLOCK_RECORD_META]

    def decide(self, op: Operation, request: GateRequest) -> bool:
        blocked = is_blocked(request, 0)
        if op is Operation.PERMISSIONLESS_FREEZE:
            return blocked
        return not blocked

    def _add_subject(self, ctx, program_id, record_info, mint, subject, args) -> None:
        self._upsert_block_record(ctx, program_id, record_info, mint, subject, args)
