"""
Operation tags.

The two permissionless tags are fixed by the interop standard; the other
Manager tags are the first eight bytes of sha256("global:<name>").
Gate administrative instructions use a single leading byte and never
collide with the 8-byte namespace because both interop tags start with a
byte outside 0..3.
"""

from __future__ import annotations

import hashlib
from typing import Dict, Optional

from .enums import GateAdminOp, Operation
from .errors import MalformedRequestError, UnknownOperationError

TAG_LEN = 8
ZERO_TAG = bytes(TAG_LEN)

PERMISSIONLESS_THAW_TAG = bytes([8, 175, 169, 129, 137, 74, 61, 241])
PERMISSIONLESS_FREEZE_TAG = bytes([214, 141, 109, 75, 248, 1, 45, 29])


def global_tag(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode("utf-8")).digest()[:TAG_LEN]


def _build_tags() -> Dict[Operation, bytes]:
    tags: Dict[Operation, bytes] = {}
    for op in Operation:
        if op is Operation.PERMISSIONLESS_THAW:
            tags[op] = PERMISSIONLESS_THAW_TAG
        elif op is Operation.PERMISSIONLESS_FREEZE:
            tags[op] = PERMISSIONLESS_FREEZE_TAG
        else:
            tags[op] = global_tag(op.value)
    return tags


OPERATION_TAGS: Dict[Operation, bytes] = _build_tags()
_TAG_TO_OPERATION: Dict[bytes, Operation] = {tag: op for op, tag in OPERATION_TAGS.items()}

# Tags a gate must answer.
INTEROP_TAGS: Dict[bytes, Operation] = {
    PERMISSIONLESS_THAW_TAG: Operation.PERMISSIONLESS_THAW,
    PERMISSIONLESS_FREEZE_TAG: Operation.PERMISSIONLESS_FREEZE,
}


def tag_for(op: Operation) -> bytes:
    return OPERATION_TAGS[op]


def parse_operation(data: bytes) -> Operation:
    """Decode the Manager operation from instruction data."""
    if len(data) < TAG_LEN:
        raise MalformedRequestError(
            f"Instruction data too short: {len(data)} bytes, need at least {TAG_LEN}"
        )
    tag = bytes(data[:TAG_LEN])
    if tag == ZERO_TAG:
        raise UnknownOperationError("All-zero tag is reserved")
    op = _TAG_TO_OPERATION.get(tag)
    if op is None:
        raise UnknownOperationError(f"Unknown operation tag {tag.hex()}")
    return op


def parse_interop(data: bytes) -> Optional[Operation]:
    """Return the permissionless operation named by data, or None if it is not an interop call."""
    if len(data) < TAG_LEN:
        return None
    return INTEROP_TAGS.get(bytes(data[:TAG_LEN]))


def parse_gate_admin(data: bytes) -> GateAdminOp:
    if not data:
        raise UnknownOperationError("Empty instruction data")
    try:
        return GateAdminOp(data[0])
    except ValueError:
        raise UnknownOperationError(f"Unknown instruction {data[:TAG_LEN].hex()}") from None
