"""Story list/read/delete plus the play endpoints (start, choose)."""

import asyncio
import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from storyweave.characters import ActiveCharacter
from storyweave.errors import StoryError
from storyweave.gate import binding_message, binding_status, choices_enabled
from storyweave.llm import StoryGenerator
from storyweave.models import Character, Choice, Story
from storyweave.pipeline import start_story, take_choice
from storyweave.session import AdvanceState, StorySessionStore

from .deps import get_characters, get_generator, get_store, http_error
from .models import ChoiceBody

logger = logging.getLogger(__name__)

router = APIRouter()


def _story_view(story: Story, active: Character | None, store: StorySessionStore) -> dict:
    """Story snapshot plus what the UI needs to enable or explain its controls."""
    status = binding_status(story, active)
    busy = store.state(story.id) is AdvanceState.ADVANCING
    return {
        **story.model_dump(mode="json"),
        "binding_status": status.value,
        "choices_enabled": choices_enabled(story, active, busy=busy),
        "message": binding_message(story, status),
    }


def _log_task_failure(task: asyncio.Task) -> None:
    """Done-callback: report a streamed choice that died outside StoryError."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("streamed choice task failed", exc_info=exc)


@router.get("/stories")
async def list_stories(
    archived: bool | None = None,
    store: StorySessionStore = Depends(get_store),
    characters: ActiveCharacter = Depends(get_characters),
):
    """List stories, most recent first. `archived` filters when given."""
    active = characters.get()
    stories = store.list_stories()
    if archived is not None:
        stories = [s for s in stories if s.archived == archived]
    return [_story_view(s, active, store) for s in stories]


@router.post("/stories")
async def create_story(
    store: StorySessionStore = Depends(get_store),
    characters: ActiveCharacter = Depends(get_characters),
    generator: StoryGenerator = Depends(get_generator),
):
    """Start a new adventure for the active character."""
    try:
        story = await start_story(store=store, characters=characters, generator=generator)
    except StoryError as e:
        raise http_error(e)
    return _story_view(story, characters.get(), store)


@router.get("/stories/{story_id}")
async def get_story(
    story_id: str,
    store: StorySessionStore = Depends(get_store),
    characters: ActiveCharacter = Depends(get_characters),
):
    """Get a single story with its binding status."""
    story = store.get_story(story_id)
    if story is None:
        raise HTTPException(404, "Story not found")
    return _story_view(story, characters.get(), store)


@router.delete("/stories/{story_id}")
async def delete_story(story_id: str, store: StorySessionStore = Depends(get_store)):
    """Delete a story and its whole history."""
    if not store.delete(story_id):
        raise HTTPException(404, "Story not found")
    return {"ok": True}


@router.post("/stories/{story_id}/choices")
async def choose(
    story_id: str,
    body: ChoiceBody,
    store: StorySessionStore = Depends(get_store),
    characters: ActiveCharacter = Depends(get_characters),
    generator: StoryGenerator = Depends(get_generator),
):
    """Take a choice and return the advanced story."""
    try:
        story = await take_choice(
            store=store, characters=characters, generator=generator,
            story_id=story_id, choice_text=body.choice,
        )
    except StoryError as e:
        raise http_error(e)
    return _story_view(story, characters.get(), store)


@router.post("/stories/{story_id}/choices/stream")
async def choose_streaming(
    story_id: str,
    body: ChoiceBody,
    store: StorySessionStore = Depends(get_store),
    characters: ActiveCharacter = Depends(get_characters),
    generator: StoryGenerator = Depends(get_generator),
):
    """Take a choice, streaming interim choice previews as server-sent events.

    Events: {"type": "preview", "choices": [...]} while generating, then one
    {"type": "story", "story": {...}} or {"type": "error", ...}.
    """
    if store.get_story(story_id) is None:
        raise HTTPException(404, "Story not found")

    events: asyncio.Queue[dict | None] = asyncio.Queue()

    def on_preview(choices: list[Choice]) -> None:
        events.put_nowait({"type": "preview", "choices": [c.model_dump() for c in choices]})

    async def run() -> None:
        try:
            story = await take_choice(
                store=store, characters=characters, generator=generator,
                story_id=story_id, choice_text=body.choice, on_preview=on_preview,
            )
            events.put_nowait({"type": "story", "story": _story_view(story, characters.get(), store)})
        except StoryError as e:
            err = http_error(e)
            logger.debug("streamed choice failed story=%s: %s", story_id, e)
            events.put_nowait({"type": "error", "status": err.status_code, "detail": err.detail})
        finally:
            events.put_nowait(None)

    task = asyncio.create_task(run())
    # the client may disconnect before event_stream awaits the task
    task.add_done_callback(_log_task_failure)

    async def event_stream():
        while True:
            event = await events.get()
            if event is None:
                break
            yield f"data: {json.dumps(event)}\n\n"
        await task

    return StreamingResponse(event_stream(), media_type="text/event-stream")
