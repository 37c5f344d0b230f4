from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from ams.db.base_class import Base

class Assessment(Base):
    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # assignment | quiz | examination | project | practical | other
    assessment_type = Column(String(20), nullable=False, default="assignment")
    due_date = Column(DateTime(timezone=True), nullable=False)
    total_marks = Column(Float, nullable=False, default=100)
    max_attempts = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    course = relationship("Course", back_populates="assessments")

    submissions = relationship("Submission", back_populates="assessment", cascade="all, delete-orphan")
