from pathlib import Path

import pytest

from storyweave.characters import ActiveCharacter
from storyweave.models import Character
from storyweave.session import StorySessionStore
from storyweave.storage import MemoryStorage, Storage


@pytest.fixture
def repo() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def file_storage(tmp_path: Path) -> Storage:
    return Storage(tmp_path / "data")


@pytest.fixture
def store(repo: MemoryStorage) -> StorySessionStore:
    return StorySessionStore(repo)


@pytest.fixture
def characters(repo: MemoryStorage, store: StorySessionStore) -> ActiveCharacter:
    return ActiveCharacter(repo, on_deleted=store.on_character_deleted)


@pytest.fixture
def aria() -> Character:
    return Character(name="Aria", backstory="A cartographer's apprentice.")
