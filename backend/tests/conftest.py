"""
Shared pytest fixtures for the placement backend.

Every test gets its own SQLite file database so commits (including threaded
ones) behave like they do against a real server.
"""

from __future__ import annotations

import os
import sys
import tempfile
import uuid
from datetime import date
from pathlib import Path

# Point the app at a throwaway database before any backend module reads settings.
_TMP_DIR = tempfile.mkdtemp(prefix="placement-tests-")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{Path(_TMP_DIR) / 'app.db'}"
os.environ.setdefault("ENVIRONMENT", "test")

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

import pytest

from core.database import get_db, get_engine, make_session_factory
from models.base import Base
from models.episode import Episode
from models.episode_inventory import EpisodeInventory
from models.show import Show
from placement.types import PLACEMENT_TYPES


class InventoryBuilder:
    """Writes shows, episodes and inventory rows, one committed session per call."""

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def show(
        self,
        name: str,
        *,
        pre: float | None = 100.0,
        mid: float | None = 150.0,
        post: float | None = 80.0,
        active: bool = True,
        show_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        with self._session_factory() as db:
            show = Show(
                id=show_id or uuid.uuid4(),
                name=name,
                is_active=active,
                pre_roll_rate=pre,
                mid_roll_rate=mid,
                post_roll_rate=post,
            )
            db.add(show)
            db.commit()
            return show.id

    def episode(
        self,
        show_id: uuid.UUID,
        air_date: date,
        *,
        statuses: dict[str, str | None] | None = None,
        number: int | None = None,
        status: str = "SCHEDULED",
    ) -> uuid.UUID:
        with self._session_factory() as db:
            ep = Episode(
                show_id=show_id,
                air_date=air_date,
                title=f"Episode {air_date.isoformat()}",
                episode_number=number,
                status=status,
            )
            db.add(ep)
            db.flush()
            for pt in PLACEMENT_TYPES:
                inv_status = (statuses or {}).get(pt, "OPEN")
                if inv_status is None:
                    # Placement type not offered on this episode.
                    continue
                db.add(EpisodeInventory(episode_id=ep.id, placement_type=pt, status=inv_status))
            db.commit()
            return ep.id

    def episodes(self, show_id: uuid.UUID, dates, **kwargs) -> list[uuid.UUID]:
        return [self.episode(show_id, d, number=i + 1, **kwargs) for i, d in enumerate(dates)]


@pytest.fixture()
def engine(tmp_path):
    eng = get_engine(f"sqlite+pysqlite:///{tmp_path / 'placement.db'}")
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def inventory(session_factory) -> InventoryBuilder:
    return InventoryBuilder(session_factory)


@pytest.fixture()
def client(session_factory):
    from fastapi.testclient import TestClient

    from main import app

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.pop(get_db, None)
