"""
Single-threaded scheduling primitives built on the asyncio event loop.

Everything here runs on the loop's thread, so no locking is involved:
timers are cancelled and re-armed instead of racing each other.
"""

import asyncio
from typing import Any, Callable, List, Optional
import logging

from ..models import ModelStatus

logger = logging.getLogger("brevskriver.scheduler")


class DebouncedTask:
    """
    Coalesces bursts of calls into one callback after a quiet period.

    Every ``schedule()`` cancels the pending timer and starts a new one.
    Without a running event loop the callback runs immediately.
    """

    def __init__(self, callback: Callable[[], Any], delay: float, name: str = "debounce"):
        self.callback = callback
        self.delay = delay
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._run()
            return
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """
        Run a pending callback now.

        Returns:
            True if a callback was pending and has run
        """
        if self._handle is None:
            return False
        self.cancel()
        self._run()
        return True

    def _fire(self) -> None:
        self._handle = None
        self._run()

    def _run(self) -> None:
        try:
            self.callback()
        except Exception as e:
            logger.error(f"{self.name} callback failed: {str(e)}")


class PeriodicTask:
    """Runs a callback at a fixed interval until stopped."""

    def __init__(self, callback: Callable[[], Any], interval: float, name: str = "periodic"):
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while True:
            try:
                self.callback()
            except Exception as e:
                logger.error(f"{self.name} callback failed: {str(e)}")
            await asyncio.sleep(self.interval)


StatusListener = Callable[[ModelStatus], Any]


class StatusObservable:
    """
    Holds the latest model status and notifies subscribers on change.
    """

    def __init__(self, initial: Optional[ModelStatus] = None):
        self._status = initial or ModelStatus()
        self._listeners: List[StatusListener] = []

    @property
    def value(self) -> ModelStatus:
        return self._status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """
        Register a listener and return a function that removes it.
        """
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def update(self, status: ModelStatus) -> bool:
        """
        Store a new status.

        Returns:
            True if the status changed and listeners were notified
        """
        if status == self._status:
            return False
        self._status = status
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error(f"Status listener failed: {str(e)}")
        return True
