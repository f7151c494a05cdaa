"""
Ordered fallback cascades.

A cascade is a list of independent strategies tried in order; the first one
that yields a non-empty value wins and later strategies are never called.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

import TT_Video_Crawler.src.logger

logger = logging.getLogger('TTVC.Cascade')

Strategy = Callable[..., Any]


@dataclass
class CascadeResult:
    value: Any
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.strategy is not None


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def run_cascade(strategies: Sequence[Strategy], *args, default: Any = None) -> CascadeResult:
    """Run strategies in order and return the first non-empty (trimmed) value."""
    for strategy in strategies:
        name = getattr(strategy, '__name__', repr(strategy))
        try:
            value = strategy(*args)
        except Exception as e:
            logger.debug(f"Strategy {name} failed: {e}")
            continue
        if _is_empty(value):
            continue
        if isinstance(value, str):
            value = value.strip()
        return CascadeResult(value=value, strategy=name)
    return CascadeResult(value=default, strategy=None)
