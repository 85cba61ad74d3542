"""Play loop: generation service -> decoder -> parser -> session store.

Opening a story:
  1. Require an active character.
  2. Ask the generator for the opening scene ("Start a new story").
  3. Decode the response (event stream or single shot), parse it into a node.
  4. store.create() binds the story to a snapshot of the character.

Taking a choice:
  1. Load the story and check its binding (archived / identity mismatch).
  2. Check the choice is one the current node offers.
  3. Build the request: character snapshot, current scene, chosen text and
     every past scene with the choice taken from it.
  4. store.advance() runs generation under the per-story guard and appends
     the old node to history only once the new node is parsed.

Any generation failure propagates before anything is written.
"""

from .orchestrator import (  # noqa: F401
    context_from_history,
    generate_node,
    start_story,
    take_choice,
)
