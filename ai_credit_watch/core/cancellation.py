"""
Cancellation tokens for in-flight balance fetches.

Each controller binding owns one token. Continuations of a fetch check the
token after the await and do nothing once it has been cancelled.
"""


class CancellationToken:
    """One-shot cancellation flag."""

    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Signal cancellation. Calling it again has no effect."""
        self._cancelled = True
