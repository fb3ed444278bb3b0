from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from algorithms.exercise_graph import ExerciseGraph

logger = logging.getLogger(__name__)


class CatalogCache:
    """Time-bounded holder for the built exercise graph.

    The graph is rebuilt through ``loader`` when nothing is cached or the
    cached copy is older than ``ttl_seconds``. ``invalidate`` forces the
    next ``get`` to rebuild.
    """

    def __init__(
        self,
        loader: Callable[[], ExerciseGraph],
        ttl_seconds: float = 3600,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be non-negative")
        self.loader = loader
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._graph: ExerciseGraph | None = None
        self._loaded_at = 0.0
        self._lock = threading.Lock()

    def is_fresh(self) -> bool:
        return (
            self._graph is not None
            and self.clock() - self._loaded_at < self.ttl_seconds
        )

    def get(self) -> ExerciseGraph:
        with self._lock:
            if not self.is_fresh():
                logger.info("Loading exercise catalog")
                self._graph = self.loader()
                self._loaded_at = self.clock()
            return self._graph

    def invalidate(self) -> None:
        with self._lock:
            self._graph = None
            self._loaded_at = 0.0
