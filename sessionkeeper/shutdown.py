"""Finalise the active session exactly once when the process goes away."""
from __future__ import annotations

import atexit
import logging
import signal
from dataclasses import dataclass
from types import FrameType
from typing import Any, List, Optional, Sequence

from .store.session import SessionWriter

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)
EXIT_TRIGGER = "atexit"


@dataclass
class ShutdownBinding:
    """One installed trigger and what it replaced."""

    trigger: str
    signum: Optional[signal.Signals] = None
    previous: Any = None


class ShutdownCoordinator:
    """Tie interrupt, terminate and interpreter exit to ``writer.close()``.

    Bindings are removed as soon as the writer is closed, whichever path
    closed it, and replaced signal handlers are restored. After finalising on
    a signal the previously installed handler still runs, so ``SIGINT``
    raises :class:`KeyboardInterrupt` and ``SIGTERM`` terminates as usual.
    """

    def __init__(
        self,
        writer: SessionWriter,
        signals: Sequence[signal.Signals] = SHUTDOWN_SIGNALS,
    ) -> None:
        self._writer = writer
        self._signals = tuple(signals)
        self._bindings: List[ShutdownBinding] = []

    @property
    def installed(self) -> bool:
        return bool(self._bindings)

    @property
    def triggers(self) -> List[str]:
        return [binding.trigger for binding in self._bindings]

    def install(self) -> "ShutdownCoordinator":
        if self._bindings or self._writer.closed:
            return self

        atexit.register(self._on_exit)
        self._bindings.append(ShutdownBinding(trigger=EXIT_TRIGGER))

        for signum in self._signals:
            if signal.getsignal(signum) == signal.SIG_IGN:
                # an ignored signal does not end the process
                logger.debug("%s is ignored; not binding it", signum.name)
                continue
            try:
                previous = signal.signal(signum, self._on_signal)
            except (OSError, ValueError):
                # signal handlers can only be set from the main thread
                logger.debug("Cannot install %s handler from this thread", signum.name)
                continue
            self._bindings.append(ShutdownBinding(trigger=signum.name, signum=signum, previous=previous))

        self._writer.on_close(self.uninstall)
        logger.debug("Shutdown triggers installed: %s", ", ".join(self.triggers))
        return self

    def uninstall(self) -> None:
        bindings, self._bindings = self._bindings, []
        for binding in bindings:
            if binding.signum is None:
                atexit.unregister(self._on_exit)
                continue
            if signal.getsignal(binding.signum) != self._on_signal:
                continue
            previous = binding.previous if binding.previous is not None else signal.SIG_DFL
            try:
                signal.signal(binding.signum, previous)
            except (OSError, ValueError):
                logger.debug("Cannot restore %s handler from this thread", binding.signum.name)

    def _on_exit(self) -> None:
        self._writer.close()

    def _on_signal(self, signum: int, frame: Optional[FrameType]) -> None:
        previous = self._previous_handler(signum)
        try:
            self._writer.close()
        finally:
            if callable(previous):
                previous(signum, frame)
            elif previous == signal.SIG_DFL:
                signal.signal(signum, signal.SIG_DFL)
                signal.raise_signal(signum)

    def _previous_handler(self, signum: int) -> Any:
        for binding in self._bindings:
            if binding.signum == signum:
                return binding.previous if binding.previous is not None else signal.SIG_DFL
        return signal.SIG_DFL


__all__ = ["ShutdownBinding", "ShutdownCoordinator", "SHUTDOWN_SIGNALS", "EXIT_TRIGGER"]
