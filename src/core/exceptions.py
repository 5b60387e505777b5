"""
Custom exceptions.

Every rule violation the engine can detect is one of a small, closed set of kinds.
The API layer maps the kind (the class) to a status code, never the message.
"""


class GameError(Exception):
    """Top-level exception for anything the battle engine refuses to do."""


class NotFoundError(GameError):
    """Game or round does not exist."""


class ForbiddenError(GameError):
    """Wrong participant or wrong role for the requested action."""


class InvalidStateError(GameError):
    """Action does not fit the current status of the game or round."""


class InvalidParticipantsError(GameError):
    """A game cannot be created between these players."""


class ConflictError(GameError):
    """Another writer changed the game between our read and our write."""


class InvalidRequestError(GameError, ValueError):
    """Raised by request model validators (ValueError so pydantic collects it)."""


class RepositoryError(Exception):
    """The game store could not be read or written."""
