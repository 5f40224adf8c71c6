from enum import Enum, IntEnum


class ErrorCode(str, Enum):
    # Gate invocation protocol
    UNKNOWN_OPERATION = "unknown_operation"
    MALFORMED_REQUEST = "malformed_request"
    UNAUTHORIZED = "unauthorized"
    INVALID_DERIVED_ADDRESS = "invalid_derived_address"
    GATE_NOT_CONFIGURED = "gate_not_configured"
    GATE_DENIED = "gate_denied"
    GATE_MISMATCH = "gate_mismatch"
    ALREADY_INITIALIZED = "already_initialized"
    INVALID_ACCOUNT_DATA = "invalid_account_data"
    DERIVATION_ERROR = "derivation_error"
    ACCESS_DENIED = "access_denied"

    # Ledger runtime
    MISSING_SIGNATURE = "missing_signature"
    PRIVILEGE_ESCALATION = "privilege_escalation"
    READONLY_MODIFIED = "readonly_modified"
    ACCOUNT_NOT_FOUND = "account_not_found"
    UNKNOWN_PROGRAM = "unknown_program"
    REENTRANCY = "reentrancy"
    CALL_DEPTH_EXCEEDED = "call_depth_exceeded"
    INVALID_ACCOUNT_STATE = "invalid_account_state"
    PROGRAM_FAILED = "program_failed"
    INTERNAL_ERROR = "internal_error"


class Operation(str, Enum):
    """Operations understood by the Manager."""

    CREATE_CONFIG = "create_config"
    SET_GATE = "set_gating_program"
    SET_FLAGS = "set_flags"
    TRANSFER_AUTHORITY = "transfer_authority"
    FORFEIT_FREEZE_AUTHORITY = "forfeit_freeze_authority"
    FREEZE = "freeze"
    THAW = "thaw"
    PERMISSIONLESS_THAW = "thaw_permissionless"
    PERMISSIONLESS_FREEZE = "freeze_permissionless"

    @property
    def is_permissionless(self) -> bool:
        return self in (Operation.PERMISSIONLESS_THAW, Operation.PERMISSIONLESS_FREEZE)


class GateAdminOp(IntEnum):
    """Single-byte administrative instructions of the reference gates."""

    INITIALIZE = 0
    ADD_SUBJECT = 1
    REMOVE_SUBJECT = 2
    TRANSFER_AUTHORITY = 3


class AccessTier(IntEnum):
    NONE = 0
    BASIC = 1
    ENHANCED = 2
    INSTITUTIONAL = 3


class BlockReason(IntEnum):
    SANCTIONS = 0
    COMPLIANCE = 1
    RISK = 2
    OTHER = 3


class ListKind(IntEnum):
    """Which list a hybrid gate admin instruction targets."""

    ALLOW = 0
    BLOCK = 1


class ManagerState(str, Enum):
    """Request lifecycle inside the Manager."""

    IDLE = "idle"
    VALIDATING_REQUEST = "validating_request"
    RESOLVING_ACCOUNTS = "resolving_accounts"
    INVOKING_GATE = "invoking_gate"
    APPLYING_ACTION = "applying_action"
    REJECTED = "rejected"
