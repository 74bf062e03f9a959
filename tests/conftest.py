import pytest

from fables_autosplit.config import Split, SplitList, SplitMode
from fables_autosplit.memory.game_memory import GameMemory
from tests.fakes import FakeGame


@pytest.fixture
def fake_game():
    return FakeGame()


@pytest.fixture
def bound_memory(fake_game):
    memory = GameMemory(process_finder=fake_game.find,
                        attacher_factory=lambda: fake_game.memory)
    assert memory.hook()
    return memory


@pytest.fixture
def split_list():
    return SplitList(mode=SplitMode.ALL, splits=[
        Split(name="Spider", required_room=11, required_enemies=[3]),
        Split(name="Chapter 1", required_flags=[59]),
        Split(name="Anywhere", required_enemies=[3]),
        Split(name="End"),
    ])
