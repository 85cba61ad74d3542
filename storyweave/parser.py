"""Generated text -> StoryNode.

The generation service is asked to answer in this shape:

    <narrative>
    <blank line>
    Choices:
    1. <choice>
    2. <choice>
    3. <choice>        (optional)

Parsing is two stages. `split_response` finds the first bare "Choices:" or
"Options:" header line (case-insensitive) that follows a blank line and cuts
the text there. `match_choice_lines` then picks every numbered line out of
the part after the header.

A node never comes back without choices: when nothing numbered is found the
two FALLBACK_CHOICES are used instead, so the player is never stuck.
"""

from __future__ import annotations

import logging
import re

from storyweave.models import Choice, StoryNode, new_id

logger = logging.getLogger(__name__)

HEADERS = ("choices:", "options:")

# optional indent, digits, a period, whitespace, then the choice text
_NUMBERED_LINE = re.compile(r"^\s*\d+\.\s+(\S.*)$")

FALLBACK_CHOICES = (
    ("default-1", "Continue the adventure"),
    ("default-2", "Take a different path"),
)


def split_response(text: str) -> tuple[str, str | None]:
    """Split text into (narrative, choices block).

    The choices block is None when no header line was found.
    """
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if line.strip().lower() not in HEADERS:
            continue
        if i == 0 or lines[i - 1].strip():
            continue
        return "\n".join(lines[:i]).strip(), "\n".join(lines[i + 1:])
    return text.strip(), None


def match_choice_lines(block: str) -> list[str]:
    """Return the text of every numbered line in block, in order."""
    texts: list[str] = []
    for line in block.split("\n"):
        match = _NUMBERED_LINE.match(line)
        if match:
            texts.append(match.group(1).strip())
    return texts


def parse_choices(block: str | None) -> list[Choice]:
    """Numbered choices from a choices block. May be empty; no fallback."""
    if block is None:
        return []
    return [
        Choice(id=f"choice-{n}", text=text)
        for n, text in enumerate(match_choice_lines(block), start=1)
    ]


def fallback_choices() -> list[Choice]:
    return [Choice(id=cid, text=text) for cid, text in FALLBACK_CHOICES]


def parse_response(text: str, node_id: str | None = None) -> StoryNode:
    """Parse a finished response into a StoryNode with at least one choice."""
    narrative, block = split_response(text)
    choices = parse_choices(block)
    if not choices:
        logger.warning(
            "No choices found in response (header %s), using fallback choices",
            "present" if block is not None else "missing",
        )
        choices = fallback_choices()

    return StoryNode(id=node_id or new_id("node"), content=narrative, choices=choices)
