from __future__ import annotations

import os

# Settings are read at import time; point the app at SQLite before anything imports it.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from community_watch import models  # noqa: F401
from community_watch.database import Base
from community_watch.models import (
    AidsProgram,
    AidsProgramZone,
    Household,
    Profile,
    ProgramAssignment,
    Staff,
    Zone,
)


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'community_watch.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def strict_session_factory(engine):
    """Sessions on the same database file that enforce foreign keys and take the write lock at BEGIN."""
    strict = create_engine(engine.url, connect_args={"check_same_thread": False, "timeout": 30})

    @event.listens_for(strict, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(strict, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield sessionmaker(bind=strict, autocommit=False, autoflush=False)
    strict.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def world(db):
    """Two covered zones, one uncovered zone, and one program with a ketua cawangan in zone 1."""
    z1 = Zone(name="Zone 1")
    z2 = Zone(name="Zone 2")
    z3 = Zone(name="Zone 3")
    db.add_all([z1, z2, z3])
    db.flush()

    admin = Staff(name="Admin", email="admin@example.com", role="super_admin")
    adun = Staff(name="Adun", email="adun@example.com", role="adun")
    leader = Staff(name="Leader", email="leader@example.com", role="zone_leader", zone_id=z1.id)
    kc = Staff(name="Ketua", ic_number="900101015555", role="ketua_cawangan", zone_id=z1.id)
    kc2 = Staff(name="Ketua Dua", email="kc2@example.com", role="ketua_cawangan", zone_id=z2.id)
    clerk = Staff(name="Clerk", email="clerk@example.com", role="staff", zone_id=z2.id)
    retired = Staff(name="Retired", email="retired@example.com", role="ketua_cawangan", status="inactive")
    db.add_all([admin, adun, leader, kc, kc2, clerk, retired])
    db.flush()

    resident = Profile(full_name="Resident", email="resident@example.com", zone_id=z1.id)
    db.add(resident)
    db.flush()

    h1 = Household(head_name="Alpha", address="1 Jalan Satu", zone_id=z1.id)
    h2 = Household(head_name="Bravo", address="2 Jalan Satu", zone_id=z1.id)
    h3 = Household(head_name="Charlie", address="3 Jalan Dua", zone_id=z2.id)
    h4 = Household(head_name="Delta", address="4 Jalan Tiga", zone_id=z3.id)
    h5 = Household(head_name="Echo", address="No zone", zone_id=None)
    db.add_all([h1, h2, h3, h4, h5])
    db.flush()

    program = AidsProgram(name="Food Aid", aid_type="food_basket", status="active", created_by=admin.id)
    db.add(program)
    db.flush()
    db.add_all([
        AidsProgramZone(program_id=program.id, zone_id=z1.id),
        AidsProgramZone(program_id=program.id, zone_id=z2.id),
        ProgramAssignment(
            program_id=program.id,
            zone_id=z1.id,
            assigned_to=kc.id,
            assigned_by=leader.id,
            assignment_type="ketua_cawangan",
        ),
        ProgramAssignment(
            program_id=program.id,
            zone_id=z2.id,
            assigned_to=kc2.id,
            assigned_by=admin.id,
            assignment_type="ketua_cawangan",
        ),
    ])
    db.commit()

    return SimpleNamespace(
        z1=z1.id,
        z2=z2.id,
        z3=z3.id,
        admin=admin,
        adun=adun,
        leader=leader,
        kc=kc,
        kc2=kc2,
        clerk=clerk,
        retired=retired,
        resident=resident,
        h1=h1.id,
        h2=h2.id,
        h3=h3.id,
        h4=h4.id,
        h5=h5.id,
        program=program.id,
    )
