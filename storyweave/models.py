"""Core domain models.

The parser, decoder, session store and storage all operate on these types.
Pydantic is used for validation and serialisation at every data boundary.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

_last_id_ms = 0


def new_id(prefix: str) -> str:
    """Return "<prefix>-<epoch ms>", strictly increasing within the process.

    Two calls in the same millisecond get consecutive values instead of the
    same one, so the creation time stays readable from the id.
    """
    global _last_id_ms
    now_ms = int(time.time() * 1000)
    _last_id_ms = max(now_ms, _last_id_ms + 1)
    return f"{prefix}-{_last_id_ms}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Character(BaseModel):
    """The player character. Identity is the exact, case-sensitive name."""

    name: str
    backstory: str

    @field_validator("name", "backstory")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class Choice(BaseModel):
    id: str  # "choice-<n>" or "default-<n>"; unique only within its node
    text: str


class StoryNode(BaseModel):
    """One generated narrative segment plus the choices offered from it."""

    id: str
    content: str
    choices: list[Choice]
    selected_choice: str | None = None  # set when the node moves into history


class StoryContext(BaseModel):
    """A past scene and the choice taken from it, fed back to the generator."""

    content: str
    choice: str | None = None


class Story(BaseModel):
    id: str
    title: str
    current_node: StoryNode
    history: list[StoryNode] = Field(default_factory=list)
    character: Character  # snapshot taken at creation
    last_updated: datetime = Field(default_factory=utcnow)
    archived: bool = False


class BindingStatus(str, Enum):
    PLAYABLE = "playable"
    IDENTITY_MISMATCH = "identity_mismatch"
    ARCHIVED = "archived"


class GenerationRequest(BaseModel):
    """Everything the generation service gets to write the next scene."""

    character: Character
    previous_content: str | None = None
    selected_choice: str | None = None
    context: list[StoryContext] = Field(default_factory=list)
