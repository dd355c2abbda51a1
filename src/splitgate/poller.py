# Copyright (c) Syntropy Systems
"""Background refresh of an experiment's results snapshot."""
from __future__ import annotations

import logging
from threading import Event, Thread
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Callable

    from splitgate.models.results import ResultsSnapshot

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 30.0


class ResultsSource(Protocol):
    """Anything that can fetch a results snapshot."""

    def get_results(self, experiment_id: str) -> ResultsSnapshot:
        ...


class ResultsPoller:
    """Background poller that periodically fetches results.

    Read-only: it hands each snapshot to a callback and never acts on it.
    """

    _source: ResultsSource
    _experiment_id: str
    _on_snapshot: Callable[[ResultsSnapshot], object]
    _interval: float
    _stop_event: Event
    _thread: Thread | None

    def __init__(
        self,
        source: ResultsSource,
        experiment_id: str,
        on_snapshot: Callable[[ResultsSnapshot], object],
        interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        """Initialize poller.

        Args:
            source: Where snapshots come from (normally an ExperimentClient)
            experiment_id: Experiment to poll
            on_snapshot: Called with every fetched snapshot
            interval: Seconds between fetches

        """
        self._source = source
        self._experiment_id = experiment_id
        self._on_snapshot = on_snapshot
        self._interval = interval
        self._stop_event = Event()
        self._thread = None

    @property
    def running(self) -> bool:
        """Whether the background thread is active."""
        return self._thread is not None

    def start(self) -> None:
        """Start background polling."""
        if self._thread is not None:
            return

        self._stop_event.clear()
        self._thread = Thread(target=self._poll_loop, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop background polling.

        A fetch still in flight after the join is abandoned: its snapshot is
        never delivered and its failure is not reported.
        """
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout=2.0)
        if self._thread.is_alive():
            logger.debug(
                "Abandoning in-flight refresh for experiment %s", self._experiment_id
            )
        self._thread = None

    def poll_once(self) -> ResultsSnapshot:
        """Fetch one snapshot and deliver it unless the poller was stopped."""
        snapshot = self._source.get_results(self._experiment_id)
        if not self._stop_event.is_set():
            _ = self._on_snapshot(snapshot)
        return snapshot

    def _poll_loop(self) -> None:
        """Background polling loop."""
        while not self._stop_event.wait(timeout=self._interval):
            try:
                _ = self.poll_once()
            except Exception as exc:
                if self._stop_event.is_set():
                    logger.debug(
                        "Results refresh for experiment %s ended by stop: %s",
                        self._experiment_id,
                        exc,
                    )
                    return
                logger.exception(
                    "Results refresh failed for experiment %s",
                    self._experiment_id,
                    exc_info=exc,
                )
