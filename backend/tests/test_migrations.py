"""The initial migration builds the same schema the ORM models describe."""

import importlib.util
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

from echo_api.db import models  # noqa: F401 - Import models to register them
from echo_api.db.base import Base

VERSIONS = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def load_revision(filename: str):
    spec = importlib.util.spec_from_file_location(filename.removesuffix(".py"), VERSIONS / filename)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def index_signature(conn, table: str) -> set[tuple]:
    return {
        (ix["name"], tuple(ix["column_names"]), bool(ix["unique"]))
        for ix in inspect(conn).get_indexes(table)
    }


@pytest.fixture
def migrated():
    engine = create_engine("sqlite://")
    revision = load_revision("001_initial_schema.py")
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            revision.upgrade()
        yield conn
    engine.dispose()


@pytest.fixture
def from_models():
    engine = create_engine("sqlite://")
    with engine.begin() as conn:
        Base.metadata.create_all(conn)
        yield conn
    engine.dispose()


def test_migration_creates_all_tables(migrated):
    assert set(inspect(migrated).get_table_names()) == {
        "users",
        "conversations",
        "messages",
        "shared_snapshots",
    }


def test_users_email_has_one_unique_index(migrated, from_models):
    assert index_signature(migrated, "users") == {("ix_users_email", ("email",), True)}
    assert index_signature(migrated, "users") == index_signature(from_models, "users")
