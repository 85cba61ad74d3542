import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI

from backend.routes import router
from storyweave.characters import ActiveCharacter
from storyweave.llm import StoryGenerator
from storyweave.session import StorySessionStore
from storyweave.storage import Storage

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def create_app(data_dir: Path | None = None, generator: StoryGenerator | None = None) -> FastAPI:
    """Build the API app around one JSON data directory.

    `generator` pins the generation service (tests, offline demo); without
    it every request builds one from the current settings.
    """
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    repo = Storage(resolved)
    store = StorySessionStore(repo)

    app = FastAPI(title="Storyweave")
    app.state.data_dir = resolved
    app.state.store = store
    app.state.characters = ActiveCharacter(repo, on_deleted=store.on_character_deleted)
    app.state.generator = generator
    app.include_router(router, prefix="/api")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
