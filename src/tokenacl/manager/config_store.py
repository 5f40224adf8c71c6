"""
MintConfig operations.

Pure functions over MintConfig; the processor loads and stores the bytes.
Only the recorded authority can change a config, and nothing here accepts
a gate as a caller, so a gate has no path to mutate its own binding.
"""

from __future__ import annotations

import logging
from typing import Optional

from tokenacl.ledger.keys import Pubkey
from tokenacl.protocol.errors import (
    AlreadyInitializedError,
    GateNotConfiguredError,
    UnauthorizedError,
)

from .state import MintConfig

logger = logging.getLogger(__name__)


def require_authority(config: MintConfig, caller: Pubkey, signed: bool) -> None:
    if not signed:
        raise UnauthorizedError(f"{caller} did not sign")
    if caller != config.authority:
        raise UnauthorizedError(f"{caller} is not the authority for mint {config.mint}")


def initialize_config(
    mint: Pubkey,
    authority: Pubkey,
    *,
    authority_signed: bool,
    exists: bool,
    bump: int,
    gate: Optional[Pubkey] = None,
) -> MintConfig:
    if exists:
        raise AlreadyInitializedError(f"MintConfig for {mint} already exists")
    if not authority_signed:
        raise UnauthorizedError(f"Authority {authority} must co-sign initialization")
    config = MintConfig(
        mint=mint,
        authority=authority,
        gate_address=gate or Pubkey.default(),
        bump=bump,
    )
    logger.info("MintConfig created for mint %s (authority %s)", mint, authority)
    return config


def set_gate(config: MintConfig, caller: Pubkey, new_gate: Pubkey, *, signed: bool) -> MintConfig:
    """Bind a new gate; the all-zero address unbinds it."""
    require_authority(config, caller, signed)
    config.gate_address = new_gate
    logger.info("Gate for mint %s set to %s", config.mint, new_gate if not new_gate.is_default() else "<unset>")
    return config


def set_flags(
    config: MintConfig,
    caller: Pubkey,
    thaw: Optional[bool] = None,
    freeze: Optional[bool] = None,
    *,
    signed: bool,
) -> MintConfig:
    """
    Update the permissionless flags. None leaves a flag as it is.

    Enabling a flag requires a bound gate; disabling is always allowed.
    """
    require_authority(config, caller, signed)
    if (thaw or freeze) and not config.gate_configured:
        raise GateNotConfiguredError(
            f"Cannot enable permissionless operations for {config.mint} without a gate"
        )
    if thaw is not None:
        config.enable_permissionless_thaw = thaw
    if freeze is not None:
        config.enable_permissionless_freeze = freeze
    logger.info(
        "Flags for mint %s: thaw=%s freeze=%s",
        config.mint,
        config.enable_permissionless_thaw,
        config.enable_permissionless_freeze,
    )
    return config


def transfer_authority(
    config: MintConfig, caller: Pubkey, new_authority: Pubkey, *, signed: bool
) -> MintConfig:
    require_authority(config, caller, signed)
    config.authority = new_authority
    logger.info("Authority for mint %s transferred to %s", config.mint, new_authority)
    return config
