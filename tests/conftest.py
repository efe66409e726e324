"""
Shared pytest fixtures for the PassVault test suite.
"""

import datetime

import pytest

from passvault.crypto import SecretCipher, StaticKeyProvider
from passvault.storage import StorageManager

TEST_KEY = b"0123456789abcdef"


class FakeClock:
    """Returns a fixed start time, advancing by `step` on every call."""

    def __init__(self, start=datetime.datetime(2024, 1, 1, 12, 0, 0),
                 step=datetime.timedelta(seconds=1)):
        self.now = start
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


@pytest.fixture
def cipher():
    return SecretCipher(StaticKeyProvider(TEST_KEY))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "vault" / "passwords.db")


@pytest.fixture
def storage(db_path, cipher, clock):
    return StorageManager(db_path, cipher=cipher, clock=clock)
