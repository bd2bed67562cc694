"""
Per-call control models: paging options, paging modes and batch chunks.

The options sub-key of a payload is a loose bag of settings. It is parsed
once per call into PagingOptions and then resolved into exactly one
PagingMode, so the paging controller never branches on independently
optional fields.
"""

from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class PagingOptions(BaseModel):
    """Parsed ``options`` sub-key of a payload.

    Both snake_case and camelCase keys are accepted
    (``page_callback`` / ``pageCallback`` and so on).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, arbitrary_types_allowed=True, extra='ignore')

    pages: Optional[Literal['all']] = None
    page_callback: Optional[Callable[..., Any]] = Field(default=None, alias='pageCallback')
    page_reduce: Optional[Callable[[Any, Any], Any]] = Field(default=None, alias='pageReduce')
    page_reduce_initial: Any = Field(default=None, alias='pageReduceInitial')
    raw: bool = False

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> 'PagingOptions':
        # Validates from a shallow copy; the caller's mapping is only read
        return cls.model_validate(dict(options or {}))

    def resolve_mode(self) -> 'PagingMode':
        """Pick the paging mode for this call."""
        if self.page_reduce is not None:
            return ReducePaging(reducer=self.page_reduce, initial=self.page_reduce_initial)
        if self.pages == 'all' and self.page_callback is not None:
            return CallbackPaging(callback=self.page_callback)
        if self.pages == 'all':
            return ReducePaging(reducer=_concatenate_pages, initial=[])
        return SinglePage()


class SinglePage(BaseModel):
    """Fetch one page and return it."""

    model_config = ConfigDict(frozen=True)

    kind: Literal['single'] = 'single'


class CallbackPaging(BaseModel):
    """Hand every page to ``callback(page, proceed)``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal['callback'] = 'callback'
    callback: Callable[..., Any]


class ReducePaging(BaseModel):
    """Fold every page into an accumulator with ``reducer(accumulator, page)``."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    kind: Literal['reduce'] = 'reduce'
    reducer: Callable[[Any, Any], Any]
    initial: Any = None


PagingMode = Union[SinglePage, CallbackPaging, ReducePaging]


def _concatenate_pages(accumulator: List[Any], page: Any) -> List[Any]:
    if isinstance(page, list):
        return accumulator + page
    return accumulator + [page]


class PageState(BaseModel):
    """Mutable bookkeeping of one paged call."""

    continuation_token: Optional[Dict[str, Any]] = None
    pages_fetched: int = 0
    accumulator: Any = None

    @property
    def exhausted(self) -> bool:
        return self.pages_fetched > 0 and self.continuation_token is None


class Chunk(BaseModel):
    """Slice of a batch request sized to the backend's per-call limit.

    ``requests`` holds ``(table_name, wire_request)`` pairs in input order;
    ``last_error`` is the throttling error from the latest failed send.
    """

    index: int
    requests: List[Any]
    attempts: int = 0
    last_error: Optional[Any] = None

    def request_items(self) -> Dict[str, List[Any]]:
        """Group pending requests by table, keeping their order."""
        grouped: Dict[str, List[Any]] = {}
        for table_name, request in self.requests:
            grouped.setdefault(table_name, []).append(request)
        return grouped


class ValidationResult(BaseModel):
    """Convenience return type for operation validators."""

    failed: bool = False
    message: Optional[str] = None
    errors: Dict[str, Any] = Field(default_factory=dict)
