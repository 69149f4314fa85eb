from typing import List

import pytest

from gpipe.client import Completion
from gpipe.config import ConfigStore


class FakeClient:
    def __init__(self, settings):
        self.settings = settings
        self.calls: List[tuple] = []

    def complete(self, message, temperature):
        self.calls.append((message, temperature))
        return Completion(f"reply {len(self.calls)}")


class Prompter:
    def __init__(self, *answers):
        self.answers = list(answers)
        self.count = 0

    def __call__(self):
        self.count += 1
        return self.answers.pop(0)


@pytest.fixture()
def store(tmp_path):
    return ConfigStore(str(tmp_path / "config"))


@pytest.fixture()
def clients():
    """Factory for the remote client that records every instance it makes."""
    made: List[FakeClient] = []

    def make(settings):
        client = FakeClient(settings)
        made.append(client)
        return client

    make.made = made
    return make
