"""Pydantic request bodies for API endpoints."""

from pydantic import BaseModel


class CharacterBody(BaseModel):
    name: str
    backstory: str


class ChoiceBody(BaseModel):
    choice: str


class GenerationSettings(BaseModel):
    provider_url: str | None = None
    api_key: str | None = None
    provider_format: str | None = None
    model: str | None = None
    timeout: float | None = None
    stream: bool | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class UpdateSettings(BaseModel):
    generation: GenerationSettings | None = None
