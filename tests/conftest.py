"""ABOUTME: Pytest configuration and fixtures for CharityGuard tests
ABOUTME: Environment helpers, SQLite session factories, and a security core and Flask app built on fakes"""

import os

import pytest
from click.testing import CliRunner
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from charityguard import bootstrap
from charityguard.adapters import database, orm
from charityguard.config import SecurityCfg
from charityguard.domain.people import Donor, Employee
from charityguard.entrypoints.flask_app import create_app
from charityguard.service_layer.background import InlineBackgroundWorker
from tests.fakes import (
    FakeAuditSink,
    FakeClock,
    FakeDonorDirectory,
    FakeEmailAdapter,
    FakeEmployeeDirectory,
    FakePersistentStore,
)


@pytest.fixture(autouse=True)
def set_test_env():
    """Automatically set test environment for all tests, with the OTP kill switch off."""
    original = {key: os.environ.get(key) for key in ("FLASK_ENV", "DISABLE_OTP_LOGIN")}
    os.environ["FLASK_ENV"] = "testing"
    os.environ.pop("DISABLE_OTP_LOGIN", None)
    yield
    for key, value in original.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def clear_env_vars():
    """Fixture to temporarily remove environment variables for testing."""
    original_vars = {}

    def _clear_env_vars(*args):
        for key in args:
            original_vars[key] = os.environ.get(key)
            os.environ.pop(key, None)

    yield _clear_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value


@pytest.fixture
def temp_env_vars():
    """Fixture to temporarily set environment variables for testing."""
    original_vars = {}

    def _set_env_vars(**kwargs):
        for key, value in kwargs.items():
            original_vars[key] = os.environ.get(key)
            os.environ[key] = value

    yield _set_env_vars

    # Restore original environment variables
    for key, value in original_vars.items():
        if value is not None:
            os.environ[key] = value
        else:
            os.environ.pop(key, None)


@pytest.fixture
def in_memory_sqlite_db():
    engine = create_engine("sqlite:///:memory:")
    return engine


@pytest.fixture
def sqlite_session_factory(in_memory_sqlite_db):
    orm.metadata.create_all(in_memory_sqlite_db)
    database.start_mappers()

    yield sessionmaker(bind=in_memory_sqlite_db, expire_on_commit=False)

    database.clear_mappers()
    orm.metadata.drop_all(in_memory_sqlite_db)


@pytest.fixture
def cli_with_session_factory(sqlite_session_factory):
    """Fixture that provides a Click runner with test session factory in context."""

    def _invoke_cli_with_context(cli_command, args, **kwargs):
        runner = CliRunner()
        ctx_obj = {"session_factory": sqlite_session_factory}
        return runner.invoke(cli_command, args, obj=ctx_obj, **kwargs)

    return _invoke_cli_with_context


# -- security core on fakes ---------------------------------------------------------


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return SecurityCfg()


@pytest.fixture
def employee_directory():
    return FakeEmployeeDirectory([
        Employee(email="alice@charity.org", name="Alice Admin", role="manager", permissions=["audit:view"]),
        Employee(email="sam@charity.org", name="Sam Staff", role="staff", permissions=["beneficiaries:view"]),
        Employee(email="ivan@charity.org", name="Ivan Inactive", role="staff", active=False),
    ])


@pytest.fixture
def donor_directory():
    return FakeDonorDirectory([Donor(email="dora@example.com", name="Dora Donor", phone="0501234567")])


@pytest.fixture
def persistent_store():
    return FakePersistentStore()


@pytest.fixture
def audit_sink():
    return FakeAuditSink()


@pytest.fixture
def email_adapter():
    return FakeEmailAdapter()


@pytest.fixture
def core(clock, settings, employee_directory, donor_directory, persistent_store, audit_sink, email_adapter):
    """A security core with every collaborator faked and background work run inline."""
    return bootstrap.bootstrap(
        start_orm=False,
        settings=settings,
        email_adapter=email_adapter,
        worker=InlineBackgroundWorker(),
        employees=employee_directory,
        donors=donor_directory,
        persistent_store=persistent_store,
        audit_sink=audit_sink,
        clock=clock,
    )


@pytest.fixture
def app(core):
    return create_app("testing", core=core)


@pytest.fixture
def client(app):
    return app.test_client()
