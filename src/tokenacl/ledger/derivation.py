"""
Address derivation.

derive(purpose, *components, program_id) -> (address, bump)

The address is sha256(seeds | bump | program_id | marker) for the highest
bump in 255..0 whose hash is not an Ed25519 curve point. Binding the
program id into the hash keeps two programs from ever deriving the same
address from the same seeds.
"""

from __future__ import annotations

import hashlib
from typing import List, Sequence, Tuple, Union

from tokenacl.protocol.errors import DerivationError

from .keys import Pubkey, is_on_curve

MAX_SEEDS = 16
MAX_SEED_LEN = 32
PDA_MARKER = b"ProgramDerivedAddress"

SeedLike = Union[bytes, bytearray, Pubkey, str]


def _seed_bytes(seed: SeedLike) -> bytes:
    if isinstance(seed, Pubkey):
        return seed.raw
    if isinstance(seed, str):
        return seed.encode("utf-8")
    return bytes(seed)


def _checked_seeds(seeds: Sequence[SeedLike]) -> List[bytes]:
    if len(seeds) > MAX_SEEDS:
        raise DerivationError(f"Too many seeds: {len(seeds)} > {MAX_SEEDS}")
    out = [_seed_bytes(s) for s in seeds]
    for raw in out:
        if len(raw) > MAX_SEED_LEN:
            raise DerivationError(f"Seed too long: {len(raw)} > {MAX_SEED_LEN} bytes")
    return out


def _digest(seeds: Sequence[bytes], program_id: Pubkey) -> bytes:
    h = hashlib.sha256()
    for raw in seeds:
        h.update(raw)
    h.update(program_id.raw)
    h.update(PDA_MARKER)
    return h.digest()


def create_program_address(seeds: Sequence[SeedLike], program_id: Pubkey) -> Pubkey:
    """
    Single-step derivation with the bump already included in seeds.

    Raises DerivationError if the result lands on the curve.
    """
    digest = _digest(_checked_seeds(seeds), program_id)
    if is_on_curve(digest):
        raise DerivationError("Derived address is on the curve")
    return Pubkey(digest)


def find_program_address(seeds: Sequence[SeedLike], program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Search bumps from 255 down and return the first valid (address, bump)."""
    base = _checked_seeds(seeds)
    if len(base) + 1 > MAX_SEEDS:
        raise DerivationError(f"Too many seeds: {len(base) + 1} > {MAX_SEEDS}")
    for bump in range(255, -1, -1):
        digest = _digest(base + [bytes([bump])], program_id)
        if not is_on_curve(digest):
            return Pubkey(digest), bump
    raise DerivationError("Unable to find a viable bump for the given seeds")


def derive(purpose: SeedLike, *components: SeedLike, program_id: Pubkey) -> Tuple[Pubkey, int]:
    """Purpose-tagged derivation: derive(b"allow-list", mint, subject, program_id=gate)."""
    return find_program_address([purpose, *components], program_id)


def verify_derived(address: Pubkey, seeds: Sequence[SeedLike], program_id: Pubkey) -> bool:
    expected, _ = find_program_address(seeds, program_id)
    return expected == address
