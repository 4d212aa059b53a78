from __future__ import annotations

from collections.abc import Awaitable, Callable
import inspect
import logging

import anyio

logger = logging.getLogger(__name__)

ProgressSink = Callable[[float, float], Awaitable[None] | None]


class ProgressReporter:
    """One-way progress channel handed to each tool run.

    The sink may be absent, slow, or failing; none of that reaches the caller.
    Reported values never decrease.
    """

    def __init__(
        self,
        sink: ProgressSink | None = None,
        *,
        total: float = 100.0,
        timeout: float = 5.0,
    ) -> None:
        self._sink = sink
        self._total = total
        self._timeout = timeout
        self._last = 0.0

    @property
    def last(self) -> float:
        return self._last

    async def report(self, progress: float) -> None:
        """Send a progress value to the sink.

        Args:
            progress: Completed amount out of ``total``.
        """
        if progress < self._last:
            return
        self._last = progress
        if self._sink is None:
            return
        with anyio.move_on_after(self._timeout) as scope:
            try:
                result = self._sink(progress, self._total)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:  # noqa: BLE001 - sink failures stay local
                logger.warning("Progress sink failed at %s/%s: %s", progress, self._total, exc)
        if scope.cancelled_caught:
            logger.warning("Progress sink timed out at %s/%s", progress, self._total)
