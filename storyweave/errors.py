"""Exception types raised by the story engine.

Generation failures (network, incomplete stream, empty content) abort the
pending create/advance and leave stored state untouched. The HTTP layer maps
each type to a status code; nothing here retries.
"""


class StoryError(RuntimeError):
    """Base class for every error the engine raises on purpose."""


class GenerationError(StoryError):
    """The generation service did not produce a usable response."""


class NetworkError(GenerationError):
    """Request to the generation service failed, was refused, or timed out."""


class StreamIncompleteError(GenerationError):
    """The response stream closed before a terminal marker was seen."""


class EmptyContentError(GenerationError):
    """The response decoded fine but contained no usable text."""


class MalformedFragmentError(StoryError):
    """One event-stream fragment was not the JSON we expected.

    The decoder logs and skips these; they never abort a decode.
    """


class InvalidTransitionError(StoryError):
    """The story cannot move forward (archived, or the choice is not offered)."""


class IdentityMismatchError(StoryError):
    """No active character, or it is not the one the story is bound to."""


class AdvanceInProgressError(StoryError):
    """Another advance on the same story is still running."""


class StoryNotFoundError(StoryError):
    """No story with the requested id."""
