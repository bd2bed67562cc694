"""
Paging Controller

Drives Query/Scan traversal for one call in one of three modes:

- SinglePage: one backend call, its page is the result
- CallbackPaging: every page goes to ``callback(page, proceed)``; the next
  page is only requested after ``proceed()`` was called. ``proceed(error)``
  or an exception from the callback aborts with PagingAborted; returning
  without calling ``proceed`` ends traversal quietly
- ReducePaging: ``accumulator = reducer(accumulator, page)`` for every page,
  the final accumulator is the result

Pages are fetched strictly one after another. The continuation token
(LastEvaluatedKey, still in wire format) is copied verbatim into the next
request's ExclusiveStartKey and never inspected.
"""

import copy
import logging
from typing import Any, Callable, Dict, Optional

from ..exceptions import PagingAborted
from ..models.paging import CallbackPaging, PageState, PagingMode, ReducePaging, SinglePage
from .marshaller import unmarshal_item

logger = logging.getLogger(__name__)

FetchPage = Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]


def shape_page(response: Dict[str, Any]) -> Dict[str, Any]:
    """Unmarshalled page object: Items, Count, ScannedCount, LastEvaluatedKey..."""
    page = {key: value for key, value in response.items() if key != 'ResponseMetadata'}
    page['Items'] = [unmarshal_item(item) for item in response.get('Items', [])]
    if response.get('LastEvaluatedKey') is not None:
        page['LastEvaluatedKey'] = unmarshal_item(response['LastEvaluatedKey'])
    return page


class _Continuation:
    """The ``proceed`` argument handed to page callbacks."""

    def __init__(self):
        self.called = False
        self.error = None

    def __call__(self, error: Any = None) -> None:
        if self.called:
            logger.warning("Page continuation invoked more than once, ignoring")
            return
        self.called = True
        self.error = error


class PagingController:
    """Runs one paged Query/Scan call."""

    def __init__(self, fetch: FetchPage, raw: bool = False, page_limit: Optional[int] = None, operation: str = ""):
        """Initialize the controller.

        Args:
            fetch: Issues one backend call given a continuation token (or None)
            raw: Hand out whole page objects instead of item lists
            page_limit: Maximum pages fetched by this call
            operation: Operation name for log messages
        """
        self.fetch = fetch
        self.raw = raw
        self.page_limit = page_limit
        self.operation = operation

    def run(self, mode: PagingMode) -> Any:
        state = PageState()
        if isinstance(mode, SinglePage):
            return self._view(self._next_page(state))
        if isinstance(mode, CallbackPaging):
            return self._run_callback(mode, state)
        if isinstance(mode, ReducePaging):
            return self._run_reduce(mode, state)
        raise TypeError(f"Unknown paging mode: {mode!r}")

    def _next_page(self, state: PageState) -> Dict[str, Any]:
        response = self.fetch(state.continuation_token)
        state.pages_fetched += 1
        state.continuation_token = response.get('LastEvaluatedKey')
        page = shape_page(response)
        logger.debug(
            f"{self.operation}: page {state.pages_fetched} with {len(page['Items'])} items, "
            f"more={state.continuation_token is not None}"
        )
        return page

    def _has_more(self, state: PageState) -> bool:
        if state.exhausted:
            return False
        if self.page_limit is not None and state.pages_fetched >= self.page_limit:
            logger.info(f"{self.operation}: stopped at page limit {self.page_limit}")
            return False
        return True

    def _view(self, page: Dict[str, Any]) -> Any:
        return page if self.raw else page['Items']

    def _run_callback(self, mode: CallbackPaging, state: PageState) -> None:
        while True:
            page = self._next_page(state)
            proceed = _Continuation()
            try:
                mode.callback(self._view(page), proceed)
            except Exception as e:
                raise PagingAborted(e, state.pages_fetched) from e

            if proceed.error is not None:
                raise PagingAborted(proceed.error, state.pages_fetched)
            if not proceed.called:
                logger.debug(f"{self.operation}: page callback did not continue, halting")
                return None
            if not self._has_more(state):
                return None

    def _run_reduce(self, mode: ReducePaging, state: PageState) -> Any:
        state.accumulator = copy.deepcopy(mode.initial)
        while True:
            page = self._next_page(state)
            try:
                state.accumulator = mode.reducer(state.accumulator, self._view(page))
            except Exception as e:
                raise PagingAborted(e, state.pages_fetched) from e
            if not self._has_more(state):
                return state.accumulator
