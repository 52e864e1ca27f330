class ArtBattleError(Exception):
    """Base class for failures that end the current phase in the error state."""


class RepositoryError(ArtBattleError):
    """A query, update or transaction against the artwork store failed."""


class NoContendersError(ArtBattleError):
    """There is no artwork that could take part in a duel."""


class EncodingError(ArtBattleError):
    """A broadcast message could not be serialized."""


class InvalidVoteError(ArtBattleError):
    """A vote payload was malformed or outside the accepted values."""
