"""Test fake implementations for dependency injection testing."""

from tests.fakes.fake_provider import FakeAuthenticator, FakeMachineProvider
from tests.fakes.fake_ssh_session import FakeRemoteHost, FakeSSHSession

__all__ = [
    "FakeAuthenticator",
    "FakeMachineProvider",
    "FakeRemoteHost",
    "FakeSSHSession",
]
