"""CounterStore protocol shared by the attempt counter backends."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class CounterStore(Protocol):
    def increment(self, key: str, window_seconds: int) -> int:
        """Atomically add one to *key* in the current window; return the new count."""
        ...

    def decrement(self, key: str, window_seconds: int) -> None:
        """Take one back from *key* in the current window, if it is counting."""
        ...

    def reset(self, key: str) -> None: ...
