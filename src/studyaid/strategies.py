"""Ordered fallback combinator shared by extraction and decoding."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, Tuple, TypeVar

from studyaid.metrics.observability import get_logger

T = TypeVar("T")
R = TypeVar("R")

Strategy = Tuple[str, Callable[[T], Optional[R]]]

_logger = get_logger("strategies")


@dataclass(frozen=True)
class StrategyOutcome(Generic[R]):
    """Value produced by the first strategy that was accepted."""

    name: str
    value: R


def first_success(
    strategies: Sequence[Strategy],
    value: T,
    *,
    accept: Callable[[R], bool] = bool,
) -> StrategyOutcome[R] | None:
    """Run ``strategies`` in order and return the first accepted result.

    Each strategy is a ``(name, fn)`` pair where ``fn(value)`` returns a result
    or ``None``. Results rejected by ``accept`` and strategies that raise are
    skipped; the error is logged and the next strategy runs on the same input.
    """

    for name, strategy in strategies:
        try:
            result = strategy(value)
        except Exception as exc:  # noqa: BLE001 - each strategy is an independent attempt
            _logger.warning("strategy.error", strategy=name, error=str(exc), error_type=type(exc).__name__)
            continue
        if result is None or not accept(result):
            _logger.debug("strategy.rejected", strategy=name)
            continue
        return StrategyOutcome(name=name, value=result)
    return None


__all__ = ["Strategy", "StrategyOutcome", "first_success"]
