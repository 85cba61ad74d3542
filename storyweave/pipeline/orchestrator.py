"""Pipeline orchestrator: runs one generation round end-to-end."""

from __future__ import annotations

import logging

from storyweave.characters import ActiveCharacter
from storyweave.errors import (
    EmptyContentError,
    IdentityMismatchError,
    InvalidTransitionError,
    StoryNotFoundError,
)
from storyweave.gate import binding_message
from storyweave.llm import StoryGenerator
from storyweave.models import BindingStatus, GenerationRequest, Story, StoryContext, StoryNode
from storyweave.parser import parse_response
from storyweave.session import StorySessionStore
from storyweave.stream import PreviewCallback, decode_response

logger = logging.getLogger(__name__)


def context_from_history(story: Story) -> list[StoryContext]:
    return [
        StoryContext(content=node.content, choice=node.selected_choice)
        for node in story.history
    ]


async def generate_node(
    generator: StoryGenerator,
    request: GenerationRequest,
    on_preview: PreviewCallback | None = None,
) -> StoryNode:
    """Call the generator, decode its response and parse the next node."""
    response = await generator(request)
    text = await decode_response(response, on_preview=on_preview)
    if not text.strip():
        raise EmptyContentError("Generation service returned no text")
    node = parse_response(text)
    logger.debug("generated node %s with %d choices", node.id, len(node.choices))
    return node


async def start_story(
    *,
    store: StorySessionStore,
    characters: ActiveCharacter,
    generator: StoryGenerator,
    on_preview: PreviewCallback | None = None,
) -> Story:
    """Generate an opening scene for the active character and store the story."""
    character = characters.get()
    if character is None:
        raise IdentityMismatchError("Create a character before starting an adventure")

    node = await generate_node(
        generator, GenerationRequest(character=character), on_preview=on_preview
    )
    return store.create(character, node)


async def take_choice(
    *,
    store: StorySessionStore,
    characters: ActiveCharacter,
    generator: StoryGenerator,
    story_id: str,
    choice_text: str,
    on_preview: PreviewCallback | None = None,
) -> Story:
    """Advance story_id by the choice with text choice_text."""
    story = store.get_story(story_id)
    if story is None:
        raise StoryNotFoundError(f"Story {story_id} not found")

    status = store.binding_status(story, characters.get())
    if status is BindingStatus.ARCHIVED:
        raise InvalidTransitionError(binding_message(story, status))
    if status is BindingStatus.IDENTITY_MISMATCH:
        raise IdentityMismatchError(binding_message(story, status))

    if choice_text not in (c.text for c in story.current_node.choices):
        raise InvalidTransitionError(f"{choice_text!r} is not a choice in the current scene")

    request = GenerationRequest(
        character=story.character,
        previous_content=story.current_node.content,
        selected_choice=choice_text,
        context=context_from_history(story),
    )

    async def next_node() -> StoryNode:
        return await generate_node(generator, request, on_preview=on_preview)

    return await store.advance(story, choice_text, next_node)
