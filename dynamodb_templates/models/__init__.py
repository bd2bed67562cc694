from .operations import OperationKind, OperationSpec, StoreDescription
from .paging import (
    CallbackPaging,
    Chunk,
    PageState,
    PagingMode,
    PagingOptions,
    ReducePaging,
    SinglePage,
    ValidationResult,
)

__all__ = [
    # Store description
    "OperationKind",
    "OperationSpec",
    "StoreDescription",
    # Paging
    "PagingOptions",
    "PagingMode",
    "SinglePage",
    "CallbackPaging",
    "ReducePaging",
    "PageState",
    # Batching
    "Chunk",
    # Validation
    "ValidationResult",
]
