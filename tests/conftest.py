"""Fixtures partagées : base SQLite temporaire, cadastre, fiches collectées."""

from __future__ import annotations

import itertools
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.orm import sessionmaker

from concordimmo.config import MatchingConfig
from concordimmo.store import (
    ReferenceRow,
    SqlCollectionStore,
    get_session_factory,
    init_database,
    sqlite_url,
)

_ref_counter = itertools.count(1)


@pytest.fixture
def config() -> MatchingConfig:
    return MatchingConfig()


@pytest.fixture
def session_factory(tmp_path: Path) -> sessionmaker:
    engine = init_database(sqlite_url(tmp_path / "concordimmo.db"))
    yield get_session_factory(engine)
    engine.dispose()


@pytest.fixture
def add_reference(session_factory: sessionmaker) -> Callable[..., str]:
    """Insère un enregistrement du cadastre ; retourne son id."""

    def _add(**kwargs: Any) -> str:
        values: dict[str, Any] = {
            "municipality": "SP",
            "identifier": f"REF-{next(_ref_counter):06d}",
            "origin": "BIC",
        }
        values.update(kwargs)
        with session_factory.begin() as session:
            row = ReferenceRow(**values)
            session.add(row)
            session.flush()
            return row.id

    return _add


@pytest.fixture
def add_collection(session_factory: sessionmaker) -> Callable[..., str]:
    """Insère une fiche collectée ; retourne son id."""

    def _add(
        fields: dict[str, Any] | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
    ) -> str:
        with session_factory.begin() as session:
            return SqlCollectionStore(session).create(fields or {}, latitude, longitude)

    return _add
