"""Prompt text sent to the generation service.

The answer format described here is what storyweave.parser expects; change
both together.
"""

from __future__ import annotations

from storyweave.models import GenerationRequest, StoryContext

SYSTEM_PROMPT = """\
You are a creative storyteller crafting an interactive adventure story in any language.
Create engaging narratives with multiple choice options (2-3) at key decision points.
Each response should include a story segment followed by clear choices for the reader.
Maintain consistency with the character's backstory and previous choices.
Keep responses concise but immersive.

Format your response EXACTLY like this, with a blank line before "Choices:":
[Story content here]

Choices:
1. [First choice]
2. [Second choice]
3. [Optional third choice]

Always include the "Choices:" header followed by numbered options.
Keep story segments between 100-200 words for better pacing."""


def format_context(context: list[StoryContext]) -> str:
    """Past scenes, each followed by the choice the player took from it."""
    blocks = []
    for ctx in context:
        block = ctx.content
        if ctx.choice:
            block += f"\nPlayer chose: {ctx.choice}"
        blocks.append(block)
    return "\n\n".join(blocks)


def build_user_prompt(request: GenerationRequest) -> str:
    lines = [
        f"Character Name: {request.character.name}",
        f"Character Backstory: {request.character.backstory}",
    ]
    context = format_context(request.context)
    if context:
        lines.append(f"Story Context:\n{context}\n")
    if request.previous_content:
        lines.append(f"Current Scene: {request.previous_content}")
    else:
        lines.append("Start a new story")
    if request.selected_choice:
        lines.append(f"Player chose: {request.selected_choice}")
    lines.append("Continue the story and provide 2-3 choices.")
    return "\n".join(lines)


def build_full_prompt(request: GenerationRequest) -> str:
    """System and user prompt in one block, for single-prompt backends."""
    return f"{SYSTEM_PROMPT}\n\n{build_user_prompt(request)}"
