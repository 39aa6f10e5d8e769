"""Pytest configuration and fixtures for testbed tests."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from tests.fakes import FakeMachineProvider, FakeRemoteHost


@pytest.fixture
def aws_credentials() -> Generator[None, None, None]:
    """Fixture to set AWS credentials for testing with proper cleanup.

    Sets mock AWS credentials in environment variables for the duration of the test,
    then restores the original environment state.

    Yields
    ------
    None
        Control back to test after setting credentials
    """
    names = ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "AWS_DEFAULT_REGION")
    original = {name: os.environ.get(name) for name in names}

    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

    yield

    for name, value in original.items():
        if value is not None:
            os.environ[name] = value
        else:
            os.environ.pop(name, None)


@pytest.fixture
def testbed_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point TESTBED_DIR at a temporary directory.

    Returns
    -------
    Path
        Temporary testbed directory; keys are written under ``keys/``
    """
    directory = tmp_path / "testbed"
    monkeypatch.setenv("TESTBED_DIR", str(directory))
    return directory


@pytest.fixture
def remote_host(monkeypatch: pytest.MonkeyPatch) -> FakeRemoteHost:
    """Replace the SSH session used by Machine with a scripted fake.

    Returns
    -------
    FakeRemoteHost
        Host whose behaviour tests can script and whose commands they can inspect
    """
    host = FakeRemoteHost()
    monkeypatch.setattr("testbed.machine.SSHSession", host.session_factory)
    return host


@pytest.fixture
def provider() -> FakeMachineProvider:
    """Provider granting ports 20000-20002."""
    return FakeMachineProvider()
