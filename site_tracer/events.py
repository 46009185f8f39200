# site_tracer/events.py
"""
Domain events emitted while a crawl runs.

The engine only calls :meth:`EventEmitter.emit`; how events reach a consumer
(console, JSON lines, a socket) is decided by whoever subscribes.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, ClassVar, Dict, List

__all__ = [
    "CrawlEvent",
    "ProgressEvent",
    "UrlCheckedEvent",
    "SummaryEvent",
    "ErrorEvent",
    "EventEmitter",
    "Listener",
]

logger = logging.getLogger("SiteTracer.events")


@dataclass(slots=True)
class CrawlEvent:
    type: ClassVar[str] = "event"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, **asdict(self)}


@dataclass(slots=True)
class ProgressEvent(CrawlEvent):
    type: ClassVar[str] = "progress"

    checked: int
    total: int


@dataclass(slots=True)
class UrlCheckedEvent(CrawlEvent):
    type: ClassVar[str] = "url-checked"

    url: str
    status: int
    domain: str
    source_pages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "url": self.url,
            "status": self.status,
            "domain": self.domain,
            "sourcePages": list(self.source_pages),
        }


@dataclass(slots=True)
class SummaryEvent(CrawlEvent):
    type: ClassVar[str] = "summary"

    stats: Dict[str, Any]


@dataclass(slots=True)
class ErrorEvent(CrawlEvent):
    type: ClassVar[str] = "error"

    message: str


Listener = Callable[[CrawlEvent], None]


class EventEmitter:
    """Fan-out of crawl events to synchronous listeners.

    A failing listener is logged and skipped; it never breaks the crawl.
    """

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def emit(self, event: CrawlEvent) -> None:
        for listener in self._listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener failed on %s", event.type)
