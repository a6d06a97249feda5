"""Pytest fixtures. Use testcontainers-python for PostgreSQL in tests."""

import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlmodel import SQLModel
from testcontainers.postgres import PostgresContainer

from tests.fakes import make_image_bytes


def clear_app_db_caches() -> None:
    """
    Clear the app's config and DB-related caches. Call this in any fixture that
    sets DATABASE_URL (e.g. to a testcontainer URL) so the app uses the new URL
    instead of a previously cached connection.
    """
    from src.api.main import (
        _get_blob_store,
        _get_critic,
        _get_rating_repo,
        _get_rating_service,
        _get_session_factory,
    )
    from src.core import config as config_module

    config_module.reset_config()
    _get_session_factory.cache_clear()
    _get_rating_repo.cache_clear()
    _get_blob_store.cache_clear()
    _get_critic.cache_clear()
    _get_rating_service.cache_clear()


@pytest.fixture(scope="module")
def postgres_container():
    """Module-scoped PostgreSQL 16 container (testcontainers)."""
    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


@pytest.fixture(scope="module")
def engine(postgres_container):
    """Module-scoped SQLAlchemy engine bound to the Postgres testcontainer, with tables created."""
    url = postgres_container.get_connection_url()
    prev = os.environ.get("DATABASE_URL")
    os.environ["DATABASE_URL"] = url
    clear_app_db_caches()
    eng = create_engine(url, pool_pre_ping=True)
    SQLModel.metadata.create_all(eng)
    try:
        yield eng
    finally:
        if prev is not None:
            os.environ["DATABASE_URL"] = prev
        else:
            os.environ.pop("DATABASE_URL", None)
        clear_app_db_caches()
        eng.dispose()


@pytest.fixture(scope="module")
def _session_factory(engine):
    """Module-scoped session factory (used to create per-test sessions)."""
    return sessionmaker(engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(engine, _session_factory):
    """Function-scoped, clean SQLAlchemy session. Each test runs in a transaction that is rolled back."""
    connection = engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")
