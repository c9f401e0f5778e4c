from __future__ import annotations

import logging
from typing import Callable, Iterable, List

logger = logging.getLogger("app.revalidate")

PLAN_LIST_PATH = "/events"


def plan_path(plan_id: int) -> str:
    return f"/events/{plan_id}"


class ResourceSignal:
    """Fire-and-forget "these resource paths changed" signal.

    Subscribers receive the list of affected paths after a mutation commits.
    A failing subscriber is logged and never affects the caller.
    """

    def __init__(self) -> None:
        self._subscribers: List[Callable[[List[str]], None]] = []
        self.emitted: List[str] = []

    def subscribe(self, callback: Callable[[List[str]], None]) -> None:
        self._subscribers.append(callback)

    def emit(self, paths: Iterable[str]) -> None:
        batch = list(dict.fromkeys(paths))
        if not batch:
            return
        self.emitted.extend(p for p in batch if p not in self.emitted)
        logger.debug("revalidate", extra={"paths": batch})
        for callback in list(self._subscribers):
            try:
                callback(batch)
            except Exception:
                logger.exception("revalidate.subscriber_failed", extra={"paths": batch})
