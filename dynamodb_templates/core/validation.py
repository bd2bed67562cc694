"""Validator hook run on the pure model before anything is marshalled."""

import copy
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ..exceptions import ValidationFailure

logger = logging.getLogger(__name__)


def pure_model(payload: Mapping[str, Any], options_key: str) -> Dict[str, Any]:
    """Payload without the reserved options sub-key."""
    return {key: value for key, value in payload.items() if key != options_key}


def is_failed(result: Any) -> bool:
    """Whether a validator result vetoes the call.

    ``None`` passes. Mappings are read through their ``failed`` key, anything
    else through a ``failed`` attribute (e.g. ValidationResult).
    """
    if result is None:
        return False
    if isinstance(result, Mapping):
        return bool(result.get('failed'))
    return bool(getattr(result, 'failed', False))


def run_validator(
    validator: Optional[Callable[[Dict[str, Any]], Any]],
    model: Mapping[str, Any],
    operation: Optional[str] = None
) -> None:
    """Run an operation's validator against a copy of the pure model.

    Raises:
        ValidationFailure: The validator returned a failed result
    """
    if validator is None:
        return
    result = validator(copy.deepcopy(dict(model)))
    if is_failed(result):
        logger.info(f"Validator rejected payload for {operation}: {result!r}")
        raise ValidationFailure(result, operation)
