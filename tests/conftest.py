import pytest

from helpers import FakeSession
from sweepcord.api import DiscordApi


@pytest.fixture
def sleeps():
    """Seconds passed to every injected sleep, in call order."""
    return []


@pytest.fixture
def make_api(sleeps):
    def factory(handler):
        session = FakeSession(handler)
        api = DiscordApi('TOKEN', session=session, sleep=sleeps.append)
        return api, session

    return factory
