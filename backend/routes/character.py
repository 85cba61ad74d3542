"""Active character endpoints."""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from storyweave.characters import ActiveCharacter
from storyweave.models import Character

from .deps import get_characters
from .models import CharacterBody

router = APIRouter()


@router.get("/character")
async def get_character(characters: ActiveCharacter = Depends(get_characters)):
    """Get the active character, or null when there is none."""
    return characters.get()


@router.put("/character")
async def put_character(body: CharacterBody, characters: ActiveCharacter = Depends(get_characters)):
    """Create or edit the active character. Existing stories keep their snapshot."""
    try:
        character = Character(name=body.name, backstory=body.backstory)
    except ValidationError:
        raise HTTPException(400, "Please fill in both name and backstory")
    return characters.set(character)


@router.delete("/character")
async def delete_character(characters: ActiveCharacter = Depends(get_characters)):
    """Remove the active character, archiving its stories first."""
    removed = characters.clear()
    if removed is None:
        raise HTTPException(404, "No active character")
    return {"ok": True, "removed": removed.name}
