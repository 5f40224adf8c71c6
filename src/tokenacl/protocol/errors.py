from typing import Optional

from .enums import ErrorCode


class TokenAclError(Exception):
    default_code = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        super().__init__(message)
        self.code = code or self.default_code


# ---------------------------------------------------------------------------
# Gate invocation protocol
# ---------------------------------------------------------------------------


class UnknownOperationError(TokenAclError):
    """Raised when an instruction tag matches no known operation."""

    default_code = ErrorCode.UNKNOWN_OPERATION


class MalformedRequestError(TokenAclError):
    """Raised when instruction data or the account list is too short or inconsistent."""

    default_code = ErrorCode.MALFORMED_REQUEST


class UnauthorizedError(TokenAclError):
    """Raised when a signature or authority check fails."""

    default_code = ErrorCode.UNAUTHORIZED


class InvalidDerivedAddressError(TokenAclError):
    """Raised when a caller-supplied derived address does not match recomputation."""

    default_code = ErrorCode.INVALID_DERIVED_ADDRESS


class GateNotConfiguredError(TokenAclError):
    default_code = ErrorCode.GATE_NOT_CONFIGURED


class GateDeniedError(TokenAclError):
    """Raised when the gate refuses (or fails to answer) a permissionless request."""

    default_code = ErrorCode.GATE_DENIED


class GateMismatchError(TokenAclError):
    default_code = ErrorCode.GATE_MISMATCH


class AlreadyInitializedError(TokenAclError):
    default_code = ErrorCode.ALREADY_INITIALIZED


class InvalidAccountDataError(TokenAclError):
    """Raised when persisted bytes have the wrong tag or length."""

    default_code = ErrorCode.INVALID_ACCOUNT_DATA


class DerivationError(TokenAclError):
    """Raised when no valid derived address exists for the given seeds. Not retryable."""

    default_code = ErrorCode.DERIVATION_ERROR


class AccessDeniedError(TokenAclError):
    """Raised by a gate program when its decision is negative."""

    default_code = ErrorCode.ACCESS_DENIED


# ---------------------------------------------------------------------------
# Ledger runtime
# ---------------------------------------------------------------------------


class LedgerError(TokenAclError):
    """Base class for failures raised by the ledger runtime itself."""


class MissingSignatureError(LedgerError):
    default_code = ErrorCode.MISSING_SIGNATURE


class PrivilegeEscalationError(LedgerError):
    """Raised when a nested invocation asks for more privilege than its caller holds."""

    default_code = ErrorCode.PRIVILEGE_ESCALATION


class ReadonlyDataModifiedError(LedgerError):
    default_code = ErrorCode.READONLY_MODIFIED


class AccountNotFoundError(LedgerError):
    default_code = ErrorCode.ACCOUNT_NOT_FOUND


class UnknownProgramError(LedgerError):
    default_code = ErrorCode.UNKNOWN_PROGRAM


class ReentrancyError(LedgerError):
    default_code = ErrorCode.REENTRANCY


class CallDepthExceededError(LedgerError):
    default_code = ErrorCode.CALL_DEPTH_EXCEEDED


class InvalidAccountStateError(LedgerError):
    default_code = ErrorCode.INVALID_ACCOUNT_STATE


class ProgramFailedError(LedgerError):
    """Wraps an unexpected exception escaping program code."""

    default_code = ErrorCode.PROGRAM_FAILED
