"""Script model — a student's answer booklet tracked by QR code."""

from typing import Optional

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Script(Base):
    __tablename__ = "scripts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    exam_id: Mapped[Optional[int]] = mapped_column(ForeignKey("exams.id"), nullable=True)
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default="GENERATED"
    )  # GENERATED, DISTRIBUTED, COLLECTED, SUBMITTED, GRADED
