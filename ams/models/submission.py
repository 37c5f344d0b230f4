from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from ams.db.base_class import Base

class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)

    assessment_id = Column(Integer, ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    content = Column(Text, nullable=True)
    file_name = Column(String(255), nullable=True)

    submitted_at = Column(DateTime, nullable=False)
    attempt_number = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("assessment_id", "student_id", "attempt_number", name="uq_submission_attempt"),
    )

    assessment = relationship("Assessment", back_populates="submissions")
    student = relationship("User", back_populates="submissions")
    grade = relationship("Grade", back_populates="submission", uselist=False, cascade="all, delete-orphan")
