from .enums import (
    AccessTier,
    BlockReason,
    ErrorCode,
    GateAdminOp,
    ListKind,
    ManagerState,
    Operation,
)
from .errors import (
    TokenAclError,
    UnknownOperationError,
    MalformedRequestError,
    UnauthorizedError,
    InvalidDerivedAddressError,
    GateNotConfiguredError,
    GateDeniedError,
    GateMismatchError,
    AlreadyInitializedError,
    InvalidAccountDataError,
    DerivationError,
    AccessDeniedError,
    LedgerError,
)
from .discriminators import (
    OPERATION_TAGS,
    PERMISSIONLESS_FREEZE_TAG,
    PERMISSIONLESS_THAW_TAG,
    parse_operation,
    tag_for,
)

__all__ = [
    "AccessTier",
    "BlockReason",
    "ErrorCode",
    "GateAdminOp",
    "ListKind",
    "ManagerState",
    "Operation",
    "TokenAclError",
    "UnknownOperationError",
    "MalformedRequestError",
    "UnauthorizedError",
    "InvalidDerivedAddressError",
    "GateNotConfiguredError",
    "GateDeniedError",
    "GateMismatchError",
    "AlreadyInitializedError",
    "InvalidAccountDataError",
    "DerivationError",
    "AccessDeniedError",
    "LedgerError",
    "OPERATION_TAGS",
    "PERMISSIONLESS_FREEZE_TAG",
    "PERMISSIONLESS_THAW_TAG",
    "parse_operation",
    "tag_for",
]
