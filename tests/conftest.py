from __future__ import annotations

import logging
import random

import pytest

from fakes import SleepRecorder
from webscraper.crawler.resilience import ResiliencePolicy


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def seeded_policy() -> ResiliencePolicy:
    return ResiliencePolicy(rng=random.Random(1234))


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
