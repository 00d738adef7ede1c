"""
Shared pytest configuration for matchday tests.

Each test gets a fresh SQLite database file (aiosqlite) with the full schema
created from the models. ``db.AsyncSessionLocal`` is pointed at the test
engine so code that opens its own sessions (the reminder worker) hits the
same database as the fixtures.
"""

import os

os.environ.setdefault("ENV", "test")

import itertools

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from matchday.database import db
from matchday.database.db import Base
from matchday.database.models import User, TeamMember, TeamRole, MemberStatus
from matchday.services import team_service, match_service, match_request_service

from matchday.tests.clock import KICKOFF, BEFORE_KICKOFF


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create a test database engine backed by a throwaway SQLite file."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'matchday_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        from matchday.database import models  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)

    test_session_maker = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )
    original_async_session_local = db.AsyncSessionLocal
    db.AsyncSessionLocal = test_session_maker

    yield engine

    db.AsyncSessionLocal = original_async_session_local
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine):
    """A session on the test database, rolled back and closed after the test."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def make_user(db_session):
    """Factory creating a verified user and returning its ID."""
    counter = itertools.count(1)

    async def _make_user(name=None, verified=True, phone_number=None):
        n = next(counter)
        user = User(
            name=name or f"Player {n}",
            email=f"player{n}@example.com",
            email_verified_at=BEFORE_KICKOFF if verified else None,
            phone_number=phone_number,
        )
        db_session.add(user)
        await db_session.flush()
        return user.id

    return _make_user


@pytest_asyncio.fixture
async def make_team(db_session, make_user):
    """Factory creating a team (captain included) and returning (team_id, captain_id)."""

    async def _make_team(name="FC Test", variant="football_11", max_members=None, captain_id=None):
        captain_id = captain_id or await make_user(name=f"{name} Captain")
        team = await team_service.create_team(
            db_session, captain_id, name=name, variant=variant, max_members=max_members
        )
        return team["id"], captain_id

    return _make_team


@pytest_asyncio.fixture
async def add_players(db_session, make_user):
    """Factory adding ``count`` new active players to a team; returns their IDs."""

    async def _add_players(team_id, count, role=TeamRole.PLAYER):
        user_ids = []
        for _ in range(count):
            user_id = await make_user()
            db_session.add(
                TeamMember(team_id=team_id, user_id=user_id, role=role, status=MemberStatus.ACTIVE)
            )
            user_ids.append(user_id)
        await db_session.flush()
        return user_ids

    return _add_players


@pytest_asyncio.fixture
async def open_match(db_session, make_team):
    """An available match published by a home team, kicking off at KICKOFF."""
    home_team_id, home_captain_id = await make_team(name="Home FC")
    match = await match_service.create_match(
        db_session,
        home_captain_id,
        home_team_id,
        scheduled_at=KICKOFF,
        location="Riverside Park",
        now=BEFORE_KICKOFF,
    )
    return {
        "match_id": match["id"],
        "home_team_id": home_team_id,
        "home_captain_id": home_captain_id,
    }


@pytest_asyncio.fixture
async def confirmed_match(db_session, make_team, open_match):
    """The open match, confirmed against an away team."""
    away_team_id, away_captain_id = await make_team(name="Away United")
    request = await match_request_service.create_request(
        db_session, away_captain_id, open_match["match_id"], away_team_id
    )
    await match_request_service.accept_request(
        db_session, request["id"], open_match["home_captain_id"], now=BEFORE_KICKOFF
    )
    return {**open_match, "away_team_id": away_team_id, "away_captain_id": away_captain_id}
