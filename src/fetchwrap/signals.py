"""Abort signals used to cancel waits and in-flight transport calls."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from contextlib import suppress

from .errors import AbortError

AbortListener = Callable[[BaseException], None]


class AbortSignal:
    """One-shot cancellation flag.

    Once aborted a signal stays aborted; later ``abort`` calls keep the first reason.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._reason: BaseException | None = None
        self._listeners: list[AbortListener] = []
        self._sources: list[AbortSignal] = []

    @property
    def aborted(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> BaseException | None:
        return self._reason

    def add_listener(self, listener: AbortListener) -> None:
        if self._reason is not None:
            listener(self._reason)
            return
        self._listeners.append(listener)

    def remove_listener(self, listener: AbortListener) -> None:
        with suppress(ValueError):
            self._listeners.remove(listener)

    def release(self) -> None:
        """Detach from the signals this one was composed from."""
        for source in self._sources:
            source.remove_listener(self._fire)
        self._sources = []

    def throw_if_aborted(self) -> None:
        if self._reason is not None:
            raise self._reason

    async def wait(self) -> None:
        await self._event.wait()

    def _fire(self, reason: BaseException | None) -> None:
        if self._reason is not None:
            return
        self._reason = reason if reason is not None else AbortError("signal aborted")
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self._reason)


class AbortController:
    def __init__(self) -> None:
        self.signal = AbortSignal()

    def abort(self, reason: BaseException | None = None) -> None:
        self.signal._fire(reason)


def any_signal(*signals: AbortSignal | None) -> AbortSignal:
    """Compose signals into one that fires as soon as any input fires."""
    composed = AbortSignal()
    for signal in signals:
        if signal is None:
            continue
        if signal.aborted:
            composed._fire(signal.reason)
            break
        signal.add_listener(composed._fire)
        composed._sources.append(signal)
    return composed


async def abortable_sleep(delay_seconds: float, signal: AbortSignal | None = None) -> None:
    """Sleep for ``delay_seconds`` or until ``signal`` fires, whichever comes first."""
    if signal is None:
        await asyncio.sleep(max(0.0, delay_seconds))
        return
    if signal.aborted:
        return
    if delay_seconds <= 0:
        await asyncio.sleep(0)
        return
    with suppress(asyncio.TimeoutError):
        await asyncio.wait_for(signal.wait(), timeout=delay_seconds)
