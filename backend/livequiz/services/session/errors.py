class LiveQuizError(Exception):
    """Base class for quiz session failures."""


class ValidationError(LiveQuizError):
    """User input was rejected before anything was persisted."""


class ConnectivityError(LiveQuizError):
    """The shared state service could not be reached or refused a write."""


class RecordNotFoundError(LiveQuizError):
    """An update targeted a record that does not exist."""
