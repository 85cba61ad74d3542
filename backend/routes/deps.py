"""Request-scoped access to the objects create_app() hangs on app.state."""

from fastapi import HTTPException, Request

from storyweave.characters import ActiveCharacter
from storyweave.config import generator_from_config, get_config
from storyweave.errors import (
    AdvanceInProgressError,
    GenerationError,
    IdentityMismatchError,
    InvalidTransitionError,
    StoryError,
    StoryNotFoundError,
)
from storyweave.llm import StoryGenerator
from storyweave.session import StorySessionStore


def get_store(request: Request) -> StorySessionStore:
    return request.app.state.store


def get_characters(request: Request) -> ActiveCharacter:
    return request.app.state.characters


def get_generator(request: Request) -> StoryGenerator:
    generator = request.app.state.generator
    if generator is None:
        generator = generator_from_config(get_config(request.app.state.data_dir))
    return generator


def http_error(e: StoryError) -> HTTPException:
    """Map an engine error to the HTTP status the client should see."""
    if isinstance(e, StoryNotFoundError):
        return HTTPException(404, str(e))
    if isinstance(e, GenerationError):
        return HTTPException(502, str(e))
    if isinstance(e, IdentityMismatchError):
        return HTTPException(403, str(e))
    if isinstance(e, AdvanceInProgressError):
        return HTTPException(409, "Already processing a choice for this story")
    if isinstance(e, InvalidTransitionError):
        return HTTPException(409, str(e))
    return HTTPException(500, str(e))
