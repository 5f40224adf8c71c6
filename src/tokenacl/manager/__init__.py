"""
The freeze-authority Manager: configuration, extra-account resolution and
the gate invocation proxy.
"""

from . import instructions
from .deescalation import assert_deescalated, deescalate
from .processor import ManagerProgram
from .resolver import (
    AccountDataSeed,
    AccountKeySeed,
    ExtraAccountMeta,
    ExtraAccountsResolver,
    LiteralSeed,
    MetaKind,
    pack_extra_metas,
    resolve_metas,
    unpack_extra_metas,
)
from .state import (
    MANAGER_PROGRAM_ID,
    MintConfig,
    find_extra_metas_address,
    find_mint_config_address,
)

__all__ = [
    "instructions",
    "assert_deescalated",
    "deescalate",
    "ManagerProgram",
    "AccountDataSeed",
    "AccountKeySeed",
    "ExtraAccountMeta",
    "ExtraAccountsResolver",
    "LiteralSeed",
    "MetaKind",
    "pack_extra_metas",
    "resolve_metas",
    "unpack_extra_metas",
    "MANAGER_PROGRAM_ID",
    "MintConfig",
    "find_extra_metas_address",
    "find_mint_config_address",
]
