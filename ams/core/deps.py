from starlette.requests import HTTPConnection

from ams.db.session import SessionLocal
from ams.services.backend import Backend


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_backend(conn: HTTPConnection) -> Backend:
    return conn.app.state.backend
