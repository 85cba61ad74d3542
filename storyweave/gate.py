"""Character binding: may this story take a choice right now?

A story is bound by name to the character it was created with. It is
playable only while that character is the active one, and never again once
archived. These are pure functions; the session store and the HTTP layer
both consult them.
"""

from __future__ import annotations

from storyweave.models import BindingStatus, Character, Story


def binding_status(story: Story, active: Character | None) -> BindingStatus:
    if story.archived:
        return BindingStatus.ARCHIVED
    if active is None or active.name != story.character.name:
        return BindingStatus.IDENTITY_MISMATCH
    return BindingStatus.PLAYABLE


def choices_enabled(story: Story, active: Character | None, busy: bool = False) -> bool:
    """Whether choice buttons should be live. `busy` is an advance in flight."""
    return not busy and binding_status(story, active) is BindingStatus.PLAYABLE


def binding_message(story: Story, status: BindingStatus) -> str | None:
    """Guidance shown to the player when the story cannot be played."""
    if status is BindingStatus.ARCHIVED:
        return (
            f"This story's character has been deleted. {story.character.name}'s "
            "adventure is archived and can only be read."
        )
    if status is BindingStatus.IDENTITY_MISMATCH:
        return (
            f'This story belongs to "{story.character.name}". Switch to a character '
            "with that name to continue this adventure."
        )
    return None
