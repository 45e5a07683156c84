"""Building and training queue models."""

from datetime import datetime

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class QueueJob(Base, TimestampMixin):
    """A timed building upgrade or unit training order.

    Attributes:
        category: ``building`` or ``training``
        target: Building key or unit key
        slot: Village slot for building jobs
        target_level: Level the building reaches on completion
        count: Units trained by a training job
        status: ``pending``, ``in_progress``, ``completed`` or ``cancelled``
        cancel_reason: Why the job was cancelled, if it was
    """

    __tablename__ = "queue_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    village_id: Mapped[int] = mapped_column(Integer, ForeignKey("villages.id"), nullable=False)
    category: Mapped[str] = mapped_column(String, nullable=False)
    target: Mapped[str] = mapped_column(String, nullable=False)
    slot: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False)
    started_at: Mapped[datetime] = mapped_column(nullable=False)
    completes_at: Mapped[datetime | None] = mapped_column(nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    __table_args__ = (
        CheckConstraint("count >= 0", name="check_job_count"),
        Index("idx_queue_job_status_due", "status", "completes_at"),
        Index("idx_queue_job_village", "village_id"),
    )

    def __repr__(self) -> str:
        return f"<QueueJob(id={self.id}, category='{self.category}', status='{self.status}')>"
