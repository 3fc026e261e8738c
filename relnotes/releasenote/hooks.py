"""Ordered callback lists used as extension points.

Two invocation disciplines exist:

* :class:`WaterfallHook` - every tap receives the previous tap's result as
  its first argument; returning ``None`` keeps the previous value. The value
  left after the last tap is the result.
* :class:`BailHook` - taps are called in order until one returns a truthy
  value, which becomes the result; remaining taps are skipped.

Taps always run in registration order.
"""

import logging
from typing import Any, Callable, List, Tuple


class Hook:
    """Base class holding the registered taps."""

    def __init__(self, name: str = ""):
        self.name = name
        self.taps: List[Tuple[str, Callable[..., Any]]] = []

    def tap(self, name: str, fn: Callable[..., Any]) -> None:
        """Register a callback under a descriptive name."""
        self.taps.append((name, fn))

    def tap_names(self) -> List[str]:
        return [name for name, _ in self.taps]

    def __len__(self) -> int:
        return len(self.taps)


class WaterfallHook(Hook):
    """Pipeline: each tap transforms the value produced by the one before."""

    def call(self, value: Any, *args: Any) -> Any:
        for name, fn in self.taps:
            result = fn(value, *args)
            if result is not None:
                value = result
            logging.getLogger(__name__).debug(f"Hook {self.name}: tap '{name}' ran")
        return value


class BailHook(Hook):
    """Veto: the first tap returning a truthy value decides."""

    def call(self, *args: Any) -> Any:
        for name, fn in self.taps:
            result = fn(*args)
            if result:
                logging.getLogger(__name__).debug(f"Hook {self.name}: tap '{name}' bailed")
                return result
        return None
