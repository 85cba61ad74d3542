"""Story session store: the story graph and its transitions.

Stories only grow. `advance` moves the current node (stamped with the
choice taken) onto the end of history and installs the next node; history
entries are never edited or reordered afterwards. `archived` is set only by
`on_character_deleted` and never cleared.

Each story has a small state machine, IDLE -> ADVANCING -> IDLE. A second
advance while the first is still ADVANCING is rejected, not queued. All of
this assumes a single event loop; there is no lock.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Union

from storyweave.errors import AdvanceInProgressError, InvalidTransitionError
from storyweave.gate import binding_status
from storyweave.models import BindingStatus, Character, Story, StoryNode, new_id, utcnow
from storyweave.storage import SessionRepository

logger = logging.getLogger(__name__)

# A ready node, or a zero-argument coroutine function that generates one.
NodeSource = Union[StoryNode, Callable[[], Awaitable[StoryNode]]]


class AdvanceState(str, Enum):
    IDLE = "idle"
    ADVANCING = "advancing"


class StorySessionStore:
    def __init__(self, repo: SessionRepository) -> None:
        self._repo = repo
        self._states: dict[str, AdvanceState] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_stories(self) -> list[Story]:
        return self._repo.list_stories()

    def get_story(self, story_id: str) -> Story | None:
        return self._repo.get_story(story_id)

    def state(self, story_id: str) -> AdvanceState:
        return self._states.get(story_id, AdvanceState.IDLE)

    def binding_status(self, story: Story, active: Character | None) -> BindingStatus:
        return binding_status(story, active)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(self, character: Character, initial_node: StoryNode) -> Story:
        """Start a story bound to a snapshot of `character`."""
        story = Story(
            id=new_id("story"),
            title=f"{character.name}'s Adventure",
            current_node=initial_node,
            character=character.model_copy(),
        )
        self._repo.upsert_story(story)
        logger.debug("created story %s for %s", story.id, character.name)
        return story

    def _check_transition(self, story: Story) -> Story | None:
        """Return the stored copy of story, refusing archived or stale ones."""
        stored = self._repo.get_story(story.id)
        if story.archived or (stored is not None and stored.archived):
            raise InvalidTransitionError(f"Story {story.id} is archived")
        if stored is not None and stored.current_node.id != story.current_node.id:
            raise InvalidTransitionError(f"Story {story.id} has moved on since it was loaded")
        return stored

    def _begin(self, story_id: str) -> None:
        if self.state(story_id) is AdvanceState.ADVANCING:
            raise AdvanceInProgressError(f"Story {story_id} is already processing a choice")
        self._states[story_id] = AdvanceState.ADVANCING

    def _finish(self, story_id: str) -> None:
        self._states.pop(story_id, None)

    async def advance(self, story: Story, selected_choice: str, next_node: NodeSource) -> Story:
        """Take `selected_choice` from the current node and move to `next_node`.

        When next_node is a coroutine function it runs under the guard, so
        generation counts as part of the advance. If it raises, nothing is
        written.
        """
        self._check_transition(story)
        self._begin(story.id)
        try:
            node = await next_node() if callable(next_node) else next_node
            # the story may have been archived or moved while we waited
            stored = self._check_transition(story)
            if stored is None:
                logger.error("Story %s missing from repository, re-inserting it", story.id)
                stored = story

            left = stored.current_node.model_copy(update={"selected_choice": selected_choice})
            updated = stored.model_copy(update={
                "history": [*stored.history, left],
                "current_node": node,
                "last_updated": utcnow(),
            })
            self._repo.upsert_story(updated)
        finally:
            self._finish(story.id)

        logger.debug("advanced story %s to %s (history=%d)", story.id, node.id, len(updated.history))
        return updated

    def on_character_deleted(self, character_name: str) -> list[str]:
        """Archive every story bound to character_name. Returns their ids."""
        archived: list[str] = []
        for story in self._repo.list_stories():
            if story.character.name != character_name or story.archived:
                continue
            self._repo.upsert_story(story.model_copy(update={"archived": True}))
            archived.append(story.id)
        if archived:
            logger.info("archived %d stories for deleted character %s", len(archived), character_name)
        return archived

    def delete(self, story_id: str) -> bool:
        return self._repo.delete_story(story_id)
