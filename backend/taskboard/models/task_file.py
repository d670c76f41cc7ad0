from uuid import UUID

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskboard.models.base import Base, CreatedAtMixin, UUIDMixin


class TaskFile(Base, UUIDMixin, CreatedAtMixin):
    """File attachment for a task. Only pending tasks accept new or removed files."""

    __tablename__ = "task_files"
    __table_args__ = (UniqueConstraint("task_id", "filename", name="uq_task_files_task_filename"),)

    task_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    file_path: Mapped[str] = mapped_column(String(1024), nullable=False)

    # Relationship
    task: Mapped["Task"] = relationship("Task", back_populates="files")
