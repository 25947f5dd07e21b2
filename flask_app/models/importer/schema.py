"""
SQLAlchemy model recording each family/student import run.

The validation phase never writes here; only bulk imports create a run row
so operators can see when an upload happened and how it went.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from ..base import BaseModel, db


class ImportRunStatus(str, enum.Enum):
    """Lifecycle states for an import run."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    PARTIALLY_FAILED = "partially_failed"
    FAILED = "failed"


class ImportRun(BaseModel):
    """Metadata describing a single bulk import."""

    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(primary_key=True)
    source: Mapped[str] = mapped_column(db.String(100), nullable=False, index=True)
    status: Mapped[ImportRunStatus] = mapped_column(
        Enum(ImportRunStatus, name="import_run_status_enum"),
        nullable=False,
        default=ImportRunStatus.PENDING,
        index=True,
    )
    row_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    started_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(db.DateTime(timezone=True))
    counts_json: Mapped[dict | None] = mapped_column(db.JSON, nullable=True)
    error_summary: Mapped[str | None] = mapped_column(db.Text, nullable=True)

    __table_args__ = (Index("idx_import_runs_status_started", "status", "started_at"),)

    def __repr__(self) -> str:
        return f"<ImportRun id={self.id} source={self.source} status={self.status.value}>"

    def mark_running(self) -> None:
        self.status = ImportRunStatus.RUNNING
        self.started_at = datetime.now(timezone.utc)

    def mark_finished(self, status: ImportRunStatus, counts: dict, error_summary: str | None = None) -> None:
        self.status = status
        self.finished_at = datetime.now(timezone.utc)
        self.counts_json = dict(counts)
        self.error_summary = error_summary

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source": self.source,
            "status": self.status.value if self.status else None,
            "rowCount": self.row_count,
            "startedAt": self._isoformat(self.started_at),
            "finishedAt": self._isoformat(self.finished_at),
            "counts": self.counts_json or {},
            "errorSummary": self.error_summary,
        }
