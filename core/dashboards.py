from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

from core.errors import RecordNotFound, ValidationError


@dataclass(frozen=True)
class DashboardRecord:
    id: str
    owner_id: str
    title: str
    description: str
    source_id: str
    tab_name: Optional[str]
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "sourceId": self.source_id,
            "tabName": self.tab_name,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DashboardStore:
    """Owner-scoped CRUD over dashboard records, kept in memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, DashboardRecord] = {}

    def create(
        self,
        owner_id: str,
        title: str,
        source_id: str,
        description: str = "",
        tab_name: Optional[str] = None,
    ) -> DashboardRecord:
        if not (title or "").strip() or not (source_id or "").strip():
            raise ValidationError("Title and sourceId are required")
        now = _now()
        record = DashboardRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title.strip(),
            description=description or "",
            source_id=source_id.strip(),
            tab_name=tab_name or None,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self._records[record.id] = record
        return record

    def list(self, owner_id: str) -> List[DashboardRecord]:
        with self._lock:
            owned = [r for r in self._records.values() if r.owner_id == owner_id]
        # newest first; insertion order breaks created_at ties
        ranked = sorted(enumerate(owned), key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [record for _, record in ranked]

    def get(self, owner_id: str, dashboard_id: str) -> DashboardRecord:
        with self._lock:
            record = self._records.get(dashboard_id)
        if record is None or record.owner_id != owner_id:
            raise RecordNotFound("Dashboard not found")
        return record

    def update(self, owner_id: str, dashboard_id: str, /, **changes) -> DashboardRecord:
        allowed = {"title", "description", "source_id", "tab_name"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Cannot update fields: {sorted(unknown)}")
        changes = {k: v for k, v in changes.items() if v is not None}
        if "title" in changes and not str(changes["title"]).strip():
            raise ValidationError("Title cannot be empty")
        if "source_id" in changes and not str(changes["source_id"]).strip():
            raise ValidationError("sourceId cannot be empty")
        with self._lock:
            record = self._records.get(dashboard_id)
            if record is None or record.owner_id != owner_id:
                raise RecordNotFound("Dashboard not found")
            updated = replace(record, updated_at=_now(), **changes)
            self._records[dashboard_id] = updated
        return updated

    def delete(self, owner_id: str, dashboard_id: str) -> None:
        with self._lock:
            record = self._records.get(dashboard_id)
            if record is None or record.owner_id != owner_id:
                raise RecordNotFound("Dashboard not found")
            del self._records[dashboard_id]
