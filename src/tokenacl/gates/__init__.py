"""
Reference gates: allow list, block list and the hybrid sanctions gate.
"""

from . import instructions
from .allow_list import AllowListGate
from .base import GateProgram, GateRequest
from .block_list import BlockListGate
from .hybrid import HybridSanctionsGate
from .state import (
    AllowListRecord,
    BlockListRecord,
    GateConfig,
    find_allow_record_address,
    find_block_record_address,
    find_gate_config_address,
)

__all__ = [
    "instructions",
    "AllowListGate",
    "GateProgram",
    "GateRequest",
    "BlockListGate",
    "HybridSanctionsGate",
    "AllowListRecord",
    "BlockListRecord",
    "GateConfig",
    "find_allow_record_address",
    "find_block_record_address",
    "find_gate_config_address",
]
