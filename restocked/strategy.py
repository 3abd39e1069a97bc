"""
Base class for extraction strategies and the two ways of running them.

Every strategy exposes one capability, `extract(context)`, and hands back a
StrategyOutcome. Strategy lists are ordered by trust; the order is part of the
contract because first-seen dedup and first-match selection both depend on it.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from .logger import get_strategy_logger
from .models import ExtractionContext, StrategyOutcome


class BaseStrategy(ABC):
    """Base class for extraction strategies."""

    name: str = "strategy"

    @abstractmethod
    def extract(self, context: ExtractionContext) -> StrategyOutcome:
        """
        Extract one kind of commerce fact from the page.

        Args:
            context: Parsed DOM, raw markup, embedded JSON blobs and final URL

        Returns:
            StrategyOutcome whose `result` is None when nothing was found
        """
        pass

    @property
    def log(self):
        return get_strategy_logger(self.name)


def _safe_extract(strategy: BaseStrategy, context: ExtractionContext) -> StrategyOutcome:
    """Run one strategy; a fault becomes a note instead of escaping."""
    try:
        outcome = strategy.extract(context)
    except Exception as e:
        strategy.log.debug(f"Strategy failed: {e!r}")
        return StrategyOutcome(None, [f"Strategy {strategy.name} failed: {e}"])
    if outcome is None:
        return StrategyOutcome(None, [])
    return outcome


def run_first_match(
    strategies: Sequence[BaseStrategy],
    context: ExtractionContext,
    kind: str,
) -> Tuple[Optional[Any], List[str], Optional[str]]:
    """
    First-match-wins: run in order until a strategy returns a result.

    Returns:
        (result, notes from every strategy attempted, name of the deciding strategy)
    """
    notes: List[str] = []
    for strategy in strategies:
        outcome = _safe_extract(strategy, context)
        notes.extend(outcome.notes)
        if outcome.result is not None:
            notes.append(f"{kind} extracted using {strategy.name}")
            return outcome.result, notes, strategy.name

    notes.append(f"No {kind.lower()} found by any strategy")
    return None, notes, None


def run_all(
    strategies: Sequence[BaseStrategy],
    context: ExtractionContext,
) -> Tuple[List[Any], List[str]]:
    """
    Run-all-and-merge: every strategy runs, results are concatenated in order.

    Strategies in this mode return lists (possibly empty) as their result.
    """
    results: List[Any] = []
    notes: List[str] = []
    for strategy in strategies:
        outcome = _safe_extract(strategy, context)
        notes.extend(outcome.notes)
        if outcome.result:
            results.extend(outcome.result)
    return results, notes
