"""The active-character slot.

Exactly one character is active at a time. Removing it archives its stories
first (through `on_deleted`), then empties the slot. Editing the character
does not touch existing stories: they keep the snapshot they were created
with, and only the name is ever compared.
"""

from __future__ import annotations

import logging
from typing import Callable

from storyweave.models import Character
from storyweave.storage import SessionRepository

logger = logging.getLogger(__name__)


class ActiveCharacter:
    def __init__(self, repo: SessionRepository, on_deleted: Callable[[str], object]) -> None:
        self._repo = repo
        self._on_deleted = on_deleted

    def get(self) -> Character | None:
        return self._repo.get_character()

    def set(self, character: Character) -> Character:
        self._repo.set_character(character)
        logger.debug("active character set to %s", character.name)
        return character

    def clear(self) -> Character | None:
        """Archive the character's stories, then remove it. Returns what was removed."""
        character = self._repo.get_character()
        if character is None:
            return None
        self._on_deleted(character.name)
        self._repo.clear_character()
        logger.info("active character %s removed", character.name)
        return character
