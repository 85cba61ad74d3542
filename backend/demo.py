"""Create demo data for development/testing. No generation service needed."""

import asyncio

from storyweave.characters import ActiveCharacter
from storyweave.llm import StaticGenerator
from storyweave.models import Character, Story
from storyweave.pipeline import start_story, take_choice
from storyweave.session import StorySessionStore
from storyweave.storage import SessionRepository

DEMO_CHARACTER = Character(
    name="Aria",
    backstory="A cartographer's apprentice who ran away with her master's "
    "unfinished map of the Drowned Coast.",
)

DEMO_SCENES = [
    """The tide is out when Aria reaches the fishing village of Low Marren. \
Boats lie on their sides in the mud like sleeping dogs, and the only sound is \
the gulls. The map in her satchel shows a lighthouse on the point, but the \
point is bare rock. An old woman mending nets watches her compare the two.

Choices:
1. Ask the old woman about the lighthouse
2. Walk out to the point before the tide turns
3. Find somewhere to stay the night""",
    """"Lighthouse?" The old woman laughs without looking up. "Went into the \
sea the winter my husband did. Forty years." She ties off a knot and finally \
meets Aria's eyes. "Your map's older than that, girl. Who drew it?"

Choices:
1. Tell her the truth about the map
2. Say you bought it from a trader
3. Ask what else the sea has taken""",
]


async def _play_demo(store: StorySessionStore, characters: ActiveCharacter) -> Story:
    story = await start_story(
        store=store, characters=characters, generator=StaticGenerator(DEMO_SCENES[0])
    )
    return await take_choice(
        store=store, characters=characters, generator=StaticGenerator(DEMO_SCENES[1]),
        story_id=story.id, choice_text=story.current_node.choices[0].text,
    )


def create_demo_data(repo: SessionRepository) -> Story:
    """Wipe existing stories and create one demo story with a single history entry."""
    for story in repo.list_stories():
        repo.delete_story(story.id)

    store = StorySessionStore(repo)
    characters = ActiveCharacter(repo, on_deleted=store.on_character_deleted)
    characters.set(DEMO_CHARACTER)
    return asyncio.run(_play_demo(store, characters))
