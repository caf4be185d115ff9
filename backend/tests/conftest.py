"""Shared pytest setup: isolated settings and in-process fakes."""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Must be set before mindcoach.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["EXA_API_KEY"] = ""
os.environ["RETRY_BASE_DELAY_SECONDS"] = "0"

import pytest

from fakes import FakeLLM, FakeSearch, SleepRecorder
from mindcoach.services.retry import RetryPolicy
from mindcoach.services.store import MemoryKeyValueBackend, Store


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def policy(sleeper):
    """Three attempts, 1s linear backoff, no real waiting."""
    return RetryPolicy(attempts=3, base_delay=1.0, sleep=sleeper)


@pytest.fixture
def store():
    return Store(MemoryKeyValueBackend())


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def search():
    return FakeSearch()
