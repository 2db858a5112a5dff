from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool

from doneo.domain.commands import CreateProject, RegisterUser
from doneo.domain.entities import Project, User
from doneo.infra import models  # noqa: F401
from doneo.infra.db import Base, build_engine, build_session_factory
from doneo.infra.repository import ProjectRepository
from doneo.services.project_service import ProjectService


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@dataclass
class Team:
    ana: User
    ben: User
    cleo: User
    outsider: User


@pytest.fixture()
def session_factory():
    engine = build_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield build_session_factory(engine)
    finally:
        engine.dispose()


@pytest.fixture()
def repo(session_factory) -> ProjectRepository:
    return ProjectRepository(session_factory)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0))


@pytest.fixture()
def service(repo: ProjectRepository, clock: FakeClock) -> ProjectService:
    return ProjectService(repo, clock=clock)


@pytest.fixture()
def team(service: ProjectService) -> Team:
    return Team(
        ana=service.execute(RegisterUser(name="Ana Lopez", phone_number="+34 600 000 001")),
        ben=service.execute(RegisterUser(name="Ben Ortiz")),
        cleo=service.execute(RegisterUser(name="Cleo Ruiz")),
        outsider=service.execute(RegisterUser(name="Olga Outsider")),
    )


@pytest.fixture()
def project(service: ProjectService, team: Team) -> Project:
    return service.execute(
        CreateProject(
            name="Casa Lopez",
            description="Kitchen renovation",
            member_ids=(team.ana.id, team.ben.id, team.cleo.id),
        )
    )


@pytest.fixture(scope="session")
def qt_app():
    from PySide6.QtCore import QCoreApplication

    app = QCoreApplication.instance() or QCoreApplication([])
    yield app
