"""Error taxonomy shared by the matcher, progression state and session controller."""


class TriviaError(Exception):
    """Base class for every error raised by the trivia core."""


class ValidationInputError(TriviaError):
    """A request carried missing or malformed fields. Nothing was mutated."""


class InvalidWager(ValidationInputError):
    """A wager outside the bounds allowed for the current question."""


class InvalidTransition(TriviaError):
    """An action that the session's current phase does not accept."""


class ProviderUnavailable(TriviaError):
    """Today's questions could not be fetched. The caller may retry."""


class JudgeUnavailable(TriviaError):
    """The semantic judge could not produce a verdict."""


class PersistenceFailure(TriviaError):
    """A player record could not be written to storage."""
