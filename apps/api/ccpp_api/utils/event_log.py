"""Injectable event logger used by the ledger and the perceptual matcher."""

import logging
from typing import Optional, Union

LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


class EventLogger:
    """Observability dependency: ``log(level, message, context)``."""

    def log(self, level: Union[str, int], message: str, context: Optional[dict] = None) -> None:
        raise NotImplementedError


class StdlibEventLogger(EventLogger):
    """Writes events through a stdlib logger, context attached as ``extra``."""

    def __init__(self, name: str = "ccpp_api"):
        self.logger = logging.getLogger(name)

    def log(self, level: Union[str, int], message: str, context: Optional[dict] = None) -> None:
        if isinstance(level, str):
            level = LEVELS.get(level.upper(), logging.INFO)
        if context:
            message = f"{message} {context}"
        self.logger.log(level, message, extra={"context": context or {}})


class MemoryEventLogger(EventLogger):
    """Keeps events in a bounded in-memory list (tests, diagnostics)."""

    def __init__(self, max_events: int = 1000):
        self.max_events = max_events
        self.events: list[tuple[str, str, dict]] = []

    def log(self, level: Union[str, int], message: str, context: Optional[dict] = None) -> None:
        if isinstance(level, int):
            level = logging.getLevelName(level)
        self.events.append((level.upper(), message, context or {}))
        if len(self.events) > self.max_events:
            self.events.pop(0)

    def messages(self, level: Optional[str] = None) -> list[str]:
        return [m for lvl, m, _ in self.events if level is None or lvl == level.upper()]
