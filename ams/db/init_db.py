from ams.db.base_class import Base
from ams.db.session import engine

# import models so SQLAlchemy registers them
from ams.models import assessment, course, enrollment, grade, submission, user  # noqa: F401


def init_db() -> None:
    Base.metadata.create_all(bind=engine)
