from .client import TokenAclClient
from .core.settings import TokenAclSettings, get_settings
from .gates import AllowListGate, BlockListGate, GateProgram, HybridSanctionsGate
from .ledger import Keypair, Ledger, Pubkey
from .manager import ManagerProgram, MintConfig
from .protocol import ErrorCode, Operation, TokenAclError

__version__ = "0.1.0"

__all__ = [
    "TokenAclClient",
    "TokenAclSettings",
    "get_settings",
    "AllowListGate",
    "BlockListGate",
    "GateProgram",
    "HybridSanctionsGate",
    "Keypair",
    "Ledger",
    "Pubkey",
    "ManagerProgram",
    "MintConfig",
    "ErrorCode",
    "Operation",
    "TokenAclError",
]
