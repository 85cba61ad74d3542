"""End-to-end play through the orchestrator with canned generator responses.

Each test sets up the active character and a GeneratorSequence, then checks
the stored story, the requests the generator saw, and what happens when a
round fails part way.
"""

import json

import pytest

from storyweave.characters import ActiveCharacter
from storyweave.errors import (
    EmptyContentError,
    IdentityMismatchError,
    InvalidTransitionError,
    NetworkError,
    StoryNotFoundError,
)
from storyweave.llm import GenerationResponse, single_chunk_stream
from storyweave.models import Character, GenerationRequest, StoryContext
from storyweave.pipeline import start_story, take_choice
from storyweave.session import AdvanceState, StorySessionStore

OPENING = """The tide is out at Low Marren.

Choices:
1. Ask the old woman about the lighthouse
2. Walk out to the point"""

SECOND = """"Lighthouse? Went into the sea forty years ago."

Choices:
1. Tell her the truth about the map
2. Say you bought it from a trader"""

THIRD = """She nods slowly and goes back to her nets.

Choices:
1. Leave
2. Stay"""


# ── Helpers ──────────────────────────────────────────────


class GeneratorSequence:
    """Record requests in order and answer each with the next canned response.

    Strings become single-shot responses; GenerationResponse objects are
    returned as given; exceptions are raised.
    """

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests: list[GenerationRequest] = []

    async def __call__(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        response = self.responses[len(self.requests) - 1]
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return GenerationResponse(stream=single_chunk_stream(response), framing="single-shot")
        return response

    @property
    def call_count(self):
        return len(self.requests)


def _event_stream(text: str, chunk: int = 7) -> GenerationResponse:
    """Serve text as chat-completion deltas, `chunk` characters at a time."""
    async def chunks():
        for i in range(0, len(text), chunk):
            delta = {"choices": [{"delta": {"content": text[i:i + chunk]}}]}
            yield f"data: {json.dumps(delta)}\n\n".encode()
        yield b"data: [DONE]\n\n"

    return GenerationResponse(stream=chunks(), framing="event-stream")


@pytest.fixture
def playing(characters: ActiveCharacter, aria: Character) -> ActiveCharacter:
    characters.set(aria)
    return characters


# ── Start ────────────────────────────────────────────────


async def test_start_story(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING])
    story = await start_story(store=store, characters=playing, generator=gen)

    assert story.title == "Aria's Adventure"
    assert story.current_node.content == "The tide is out at Low Marren."
    assert [c.text for c in story.current_node.choices] == [
        "Ask the old woman about the lighthouse", "Walk out to the point",
    ]
    assert story.history == []
    assert store.list_stories() == [story]

    request = gen.requests[0]
    assert request.character.name == "Aria"
    assert request.previous_content is None
    assert request.selected_choice is None
    assert request.context == []


async def test_start_without_character(store: StorySessionStore, characters: ActiveCharacter):
    gen = GeneratorSequence([OPENING])
    with pytest.raises(IdentityMismatchError):
        await start_story(store=store, characters=characters, generator=gen)
    assert gen.call_count == 0
    assert store.list_stories() == []


async def test_start_failure_creates_nothing(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([NetworkError("Generation service timed out after 10s")])
    with pytest.raises(NetworkError):
        await start_story(store=store, characters=playing, generator=gen)
    assert store.list_stories() == []


async def test_unformatted_response_gets_fallback_choices(
    store: StorySessionStore, playing: ActiveCharacter
):
    gen = GeneratorSequence(["Just a paragraph with no choices at all."])
    story = await start_story(store=store, characters=playing, generator=gen)
    assert story.current_node.content == "Just a paragraph with no choices at all."
    assert [c.id for c in story.current_node.choices] == ["default-1", "default-2"]


# ── Choose ───────────────────────────────────────────────


async def test_play_two_rounds(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING, SECOND, THIRD])
    story = await start_story(store=store, characters=playing, generator=gen)

    story = await take_choice(
        store=store, characters=playing, generator=gen,
        story_id=story.id, choice_text="Ask the old woman about the lighthouse",
    )
    assert [n.selected_choice for n in story.history] == ["Ask the old woman about the lighthouse"]
    assert story.current_node.content.startswith('"Lighthouse?')

    request = gen.requests[1]
    assert request.previous_content == "The tide is out at Low Marren."
    assert request.selected_choice == "Ask the old woman about the lighthouse"
    assert request.context == []

    story = await take_choice(
        store=store, characters=playing, generator=gen,
        story_id=story.id, choice_text="Tell her the truth about the map",
    )
    assert len(story.history) == 2
    assert gen.requests[2].context == [
        StoryContext(
            content="The tide is out at Low Marren.",
            choice="Ask the old woman about the lighthouse",
        ),
    ]
    assert store.get_story(story.id) == story


async def test_failed_choice_leaves_story_unchanged(
    store: StorySessionStore, playing: ActiveCharacter
):
    gen = GeneratorSequence([OPENING, NetworkError("Cannot connect"), SECOND])
    story = await start_story(store=store, characters=playing, generator=gen)

    with pytest.raises(NetworkError):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Walk out to the point",
        )
    assert store.get_story(story.id) == story
    assert store.state(story.id) is AdvanceState.IDLE

    # the same choice can be retried
    retried = await take_choice(
        store=store, characters=playing, generator=gen,
        story_id=story.id, choice_text="Walk out to the point",
    )
    assert len(retried.history) == 1


async def test_empty_text_is_rejected(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING, "   \n  "])
    story = await start_story(store=store, characters=playing, generator=gen)
    with pytest.raises(EmptyContentError):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Walk out to the point",
        )
    assert store.get_story(story.id).history == []


async def test_refused_stream(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING, GenerationResponse(ok=False)])
    story = await start_story(store=store, characters=playing, generator=gen)
    with pytest.raises(NetworkError):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Walk out to the point",
        )
    assert store.get_story(story.id) == story


async def test_unknown_choice(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING])
    story = await start_story(store=store, characters=playing, generator=gen)
    with pytest.raises(InvalidTransitionError, match="not a choice"):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Fly away",
        )
    assert gen.call_count == 1


async def test_unknown_story(store: StorySessionStore, playing: ActiveCharacter):
    with pytest.raises(StoryNotFoundError):
        await take_choice(
            store=store, characters=playing, generator=GeneratorSequence([]),
            story_id="story-0", choice_text="Leave",
        )


# ── Character binding ────────────────────────────────────


async def test_other_character_cannot_play(store: StorySessionStore, playing: ActiveCharacter):
    gen = GeneratorSequence([OPENING, SECOND])
    story = await start_story(store=store, characters=playing, generator=gen)
    playing.set(Character(name="Bram", backstory="A smuggler."))

    with pytest.raises(IdentityMismatchError, match='"Aria"'):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Walk out to the point",
        )
    assert gen.call_count == 1
    assert store.get_story(story.id).history == []


async def test_renamed_back_character_can_play(
    store: StorySessionStore, playing: ActiveCharacter
):
    gen = GeneratorSequence([OPENING, SECOND])
    story = await start_story(store=store, characters=playing, generator=gen)
    playing.set(Character(name="Aria", backstory="Rewritten backstory."))

    updated = await take_choice(
        store=store, characters=playing, generator=gen,
        story_id=story.id, choice_text="Walk out to the point",
    )
    assert len(updated.history) == 1
    # the story keeps the snapshot it was created with
    assert gen.requests[1].character.backstory == "A cartographer's apprentice."


async def test_deleted_character_archives_story(
    store: StorySessionStore, playing: ActiveCharacter, aria: Character
):
    gen = GeneratorSequence([OPENING, SECOND])
    story = await start_story(store=store, characters=playing, generator=gen)

    playing.clear()
    assert store.get_story(story.id).archived is True

    playing.set(aria)
    with pytest.raises(InvalidTransitionError, match="archived"):
        await take_choice(
            store=store, characters=playing, generator=gen,
            story_id=story.id, choice_text="Walk out to the point",
        )
    assert gen.call_count == 1


# ── Streaming previews ───────────────────────────────────


async def test_previews_from_event_stream(store: StorySessionStore, playing: ActiveCharacter):
    text = SECOND.replace(
        "2. Say you bought it from a trader",
        "2. Say you bought it from a trader\n3. Ask what else the sea has taken",
    )
    gen = GeneratorSequence([OPENING, _event_stream(text)])
    story = await start_story(store=store, characters=playing, generator=gen)

    previews = []
    story = await take_choice(
        store=store, characters=playing, generator=gen,
        story_id=story.id, choice_text="Walk out to the point",
        on_preview=previews.append,
    )

    assert previews
    counts = [len(p) for p in previews]
    assert counts == sorted(counts)
    assert counts[0] >= 2
    assert [c.text for c in story.current_node.choices] == [
        "Tell her the truth about the map",
        "Say you bought it from a trader",
        "Ask what else the sea has taken",
    ]

