"""
In-memory ledger used by the Manager and the gates.

Accounts, address derivation, signed transactions with atomic commit, nested
program invocation with privilege checks, and a minimal token program.
"""

from .accounts import SYSTEM_PROGRAM_ID, Account, AccountInfo, AccountMeta, Instruction
from .derivation import create_program_address, derive, find_program_address
from .keys import Keypair, Pubkey, is_on_curve, verify_signature
from .runtime import InvokeContext, Ledger, Program, Transaction, TransactionReceipt
from .token import TOKEN_PROGRAM_ID, Mint, TokenAccount, TokenProgram, get_associated_token_address

__all__ = [
    "SYSTEM_PROGRAM_ID",
    "Account",
    "AccountInfo",
    "AccountMeta",
    "Instruction",
    "create_program_address",
    "derive",
    "find_program_address",
    "Keypair",
    "Pubkey",
    "is_on_curve",
    "verify_signature",
    "InvokeContext",
    "Ledger",
    "Program",
    "Transaction",
    "TransactionReceipt",
    "TOKEN_PROGRAM_ID",
    "Mint",
    "TokenAccount",
    "TokenProgram",
    "get_associated_token_address",
]
