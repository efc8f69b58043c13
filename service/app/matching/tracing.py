"""Optional trace side-channel for scoring decisions."""

from typing import Any, Protocol

import structlog

from app.logging_config import TRACE_LOGGER


class ScoringTracer(Protocol):
    def __call__(self, event: str, **fields: Any) -> None:
        ...


class StructlogTracer:
    """Forwards scoring events to a structlog logger at debug level."""

    def __init__(self, logger=None):
        self._logger = logger or structlog.get_logger(TRACE_LOGGER)

    def __call__(self, event: str, **fields: Any) -> None:
        self._logger.debug(event, **fields)


class RecordingTracer:
    """Keeps events in memory, e.g. for explaining a single score."""

    def __init__(self):
        self.events: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, event: str, **fields: Any) -> None:
        self.events.append((event, fields))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def emit(tracer: ScoringTracer | None, event: str, **fields: Any) -> None:
    if tracer is not None:
        tracer(event, **fields)
