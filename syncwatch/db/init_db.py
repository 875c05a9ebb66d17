from __future__ import annotations

from syncwatch.db.models import Base
from syncwatch.db.session import get_engine


def initialize_database() -> None:
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
