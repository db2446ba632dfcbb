"""
Post-transition side effects.

Effects run after the transition's transaction has finished. ``required``
effects (wallet settlement) propagate their errors; ``best_effort`` effects
(notifications, chat) are logged and dropped on failure, and still run when
a required effect failed.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Tuple

logger = logging.getLogger(__name__)


@dataclass
class TransitionEffects:
    booking_id: int
    required: List[Tuple[str, Callable[[], Any]]] = field(default_factory=list)
    best_effort: List[Tuple[str, Callable[[], Any]]] = field(default_factory=list)

    def must(self, name: str, func: Callable[[], Any]) -> "TransitionEffects":
        self.required.append((name, func))
        return self

    def attempt(self, name: str, func: Callable[[], Any]) -> "TransitionEffects":
        self.best_effort.append((name, func))
        return self

    def run(self) -> dict:
        results = {}
        try:
            for name, func in self.required:
                results[name] = func()
        finally:
            for name, func in self.best_effort:
                try:
                    results[name] = func()
                except Exception:
                    logger.warning(
                        "Best-effort %s failed for booking %s",
                        name, self.booking_id, exc_info=True,
                    )
                    results[name] = None
        return results
