"""Per-view session context owned by the UI shell.

The session holds the signed-in principal, the selected dashboard, the current
dataset, the chart registry and per-chart view settings. Fetches are tagged
with a generation number; a completion whose generation is no longer current
is discarded, so a slow response for an abandoned sheet never overwrites the
one on screen.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional

from core.accounts import Principal
from core.dashboards import DashboardRecord
from core.dataset import TabularDataset
from core.errors import DataUnavailable
from core.registry import ChartRegistry
from core.settings import ViewSettings, default_settings
from core.sources import SheetSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchTicket:
    generation: int
    source_id: str
    sheet_name: Optional[str] = None
    range_: Optional[str] = None


@dataclass
class DashboardSession:
    principal: Optional[Principal] = None
    token: Optional[str] = None
    dashboard: Optional[DashboardRecord] = None
    dataset: Optional[TabularDataset] = None
    error: Optional[str] = None
    registry: ChartRegistry = field(default_factory=ChartRegistry)
    settings: Dict[str, ViewSettings] = field(default_factory=dict)
    _generation: int = 0
    _pending: Optional[FetchTicket] = None
    _last_attempt: Optional[FetchTicket] = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def authenticated(self) -> bool:
        return self.principal is not None

    @property
    def loading(self) -> bool:
        return self._pending is not None

    def sign_in(self, principal: Principal, token: str) -> None:
        self.principal = principal
        self.token = token

    def sign_out(self) -> None:
        self.cancel()
        self.principal = None
        self.token = None
        self.dashboard = None
        self._last_attempt = None
        self._reset_data()

    def _reset_data(self) -> None:
        self.dataset = None
        self.error = None
        self.registry.bind(())
        self.settings.clear()

    def begin_fetch(
        self, source_id: str, sheet_name: Optional[str] = None, range_: Optional[str] = None
    ) -> FetchTicket:
        with self._lock:
            self._generation += 1
            ticket = FetchTicket(self._generation, source_id, sheet_name, range_)
            self._pending = ticket
            self._last_attempt = ticket
        self.error = None
        return ticket

    def is_current(self, ticket: FetchTicket) -> bool:
        return ticket.generation == self._generation

    def complete_fetch(self, ticket: FetchTicket, dataset: TabularDataset) -> bool:
        with self._lock:
            if not self.is_current(ticket):
                logger.debug("dropping stale fetch for %s (generation %d)", ticket.source_id, ticket.generation)
                return False
            self._pending = None
        self.dataset = dataset
        self.error = None
        self.registry.bind(dataset.headers)
        self.settings.clear()
        return True

    def fail_fetch(self, ticket: FetchTicket, exc: Exception) -> bool:
        with self._lock:
            if not self.is_current(ticket):
                logger.debug("dropping stale failure for %s: %s", ticket.source_id, exc)
                return False
            self._pending = None
        self.error = str(exc) or type(exc).__name__
        return True

    def cancel(self) -> None:
        """Invalidate every outstanding ticket."""
        with self._lock:
            self._generation += 1
            self._pending = None

    def select_dashboard(self, record: Optional[DashboardRecord]) -> None:
        self.cancel()
        self.dashboard = record
        self._reset_data()

    def load(self, source: SheetSource, ticket: FetchTicket, range_: Optional[str] = None) -> bool:
        """Fetch through ``source`` and apply the result if ``ticket`` is still current."""
        try:
            dataset = source.fetch(ticket.source_id, ticket.sheet_name, range_ if range_ is not None else ticket.range_)
        except DataUnavailable as exc:
            self.fail_fetch(ticket, exc)
            return False
        return self.complete_fetch(ticket, dataset)

    @property
    def can_retry(self) -> bool:
        return self._last_attempt is not None

    def retry(self, source: SheetSource) -> bool:
        """Re-run the most recent fetch attempt, whether or not it succeeded."""
        last = self._last_attempt
        if last is None:
            return False
        ticket = self.begin_fetch(last.source_id, last.sheet_name, last.range_)
        return self.load(source, ticket)

    def settings_for(self, chart_id: str) -> ViewSettings:
        if chart_id not in self.settings:
            self.settings[chart_id] = default_settings(self.dataset or TabularDataset.empty())
        return self.settings[chart_id]

    def set_settings(self, chart_id: str, settings: ViewSettings) -> None:
        self.settings[chart_id] = settings
