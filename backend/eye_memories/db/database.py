from typing import Iterator

from fastapi import Request
from sqlmodel import Session


def get_session(request: Request) -> Iterator[Session]:
    """Yield a session bound to the engine created at application startup."""
    with Session(request.app.state.engine) as session:
        yield session
