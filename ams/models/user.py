from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ams.db.base_class import Base

ROLES = ("student", "instructor", "admin")


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    full_name: Mapped[str | None] = mapped_column(String(255))
    # one of ROLES; identity itself comes from the upstream auth layer
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="student", index=True)

    enrollments = relationship("Enrollment", back_populates="student", cascade="all, delete-orphan")
    submissions = relationship("Submission", back_populates="student", cascade="all, delete-orphan")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
