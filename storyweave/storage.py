"""Session repository: stories plus the active-character slot.

The session store reads and writes only through the SessionRepository
protocol. Two implementations:

    Storage        flat JSON files under a base directory
    MemoryStorage  in-process lists, same semantics; used by tests and demos

Directory layout for Storage:

    {base}/
      stories.json     ← list of Story objects, most recently created first
      character.json   ← the active Character (absent when none)
      config.json      ← app settings, see storyweave.config

Writes replace whole records. There is no locking or versioning: the last
write wins.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Protocol

from storyweave.models import Character, Story


class SessionRepository(Protocol):
    def list_stories(self) -> list[Story]: ...

    def get_story(self, story_id: str) -> Story | None: ...

    def upsert_story(self, story: Story) -> None: ...

    def delete_story(self, story_id: str) -> bool: ...

    def get_character(self) -> Character | None: ...

    def set_character(self, character: Character) -> None: ...

    def clear_character(self) -> None: ...


def _upsert(stories: list[Story], story: Story) -> list[Story]:
    """Replace by id in place, or insert at the front."""
    for i, s in enumerate(stories):
        if s.id == story.id:
            stories[i] = story
            break
    else:
        stories.insert(0, story)
    return stories


class Storage:
    def __init__(self, base_path: Path) -> None:
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base

    # ------------------------------------------------------------------
    # Internal path helpers
    # ------------------------------------------------------------------

    def _stories_file(self) -> Path:
        return self._base / "stories.json"

    def _character_file(self) -> Path:
        return self._base / "character.json"

    def _read_json(self, path: Path) -> Any:
        return json.loads(path.read_text())

    def _write_json(self, path: Path, data: Any) -> None:
        path.write_text(json.dumps(data, indent=2))

    # ------------------------------------------------------------------
    # Stories
    # ------------------------------------------------------------------

    def list_stories(self) -> list[Story]:
        path = self._stories_file()
        if not path.exists():
            return []
        return [Story.model_validate(s) for s in self._read_json(path)]

    def get_story(self, story_id: str) -> Story | None:
        for story in self.list_stories():
            if story.id == story_id:
                return story
        return None

    def _save_stories(self, stories: list[Story]) -> None:
        self._write_json(
            self._stories_file(), [s.model_dump(mode="json") for s in stories]
        )

    def upsert_story(self, story: Story) -> None:
        self._save_stories(_upsert(self.list_stories(), story))

    def delete_story(self, story_id: str) -> bool:
        stories = self.list_stories()
        kept = [s for s in stories if s.id != story_id]
        if len(kept) == len(stories):
            return False
        self._save_stories(kept)
        return True

    # ------------------------------------------------------------------
    # Active character
    # ------------------------------------------------------------------

    def get_character(self) -> Character | None:
        path = self._character_file()
        if not path.exists():
            return None
        return Character.model_validate_json(path.read_text())

    def set_character(self, character: Character) -> None:
        self._character_file().write_text(character.model_dump_json(indent=2))

    def clear_character(self) -> None:
        self._character_file().unlink(missing_ok=True)


class MemoryStorage:
    def __init__(self) -> None:
        self._stories: list[Story] = []
        self._character: Character | None = None

    def list_stories(self) -> list[Story]:
        return [s.model_copy(deep=True) for s in self._stories]

    def get_story(self, story_id: str) -> Story | None:
        for story in self._stories:
            if story.id == story_id:
                return story.model_copy(deep=True)
        return None

    def upsert_story(self, story: Story) -> None:
        _upsert(self._stories, story.model_copy(deep=True))

    def delete_story(self, story_id: str) -> bool:
        before = len(self._stories)
        self._stories = [s for s in self._stories if s.id != story_id]
        return len(self._stories) < before

    def get_character(self) -> Character | None:
        return self._character.model_copy() if self._character else None

    def set_character(self, character: Character) -> None:
        self._character = character.model_copy()

    def clear_character(self) -> None:
        self._character = None
