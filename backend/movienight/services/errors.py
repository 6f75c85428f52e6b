"""
Service-layer error taxonomy.

Every failure a handler surfaces carries one of four codes. Routers turn
them into HTTP errors with the standard ``{"error": {...}}`` envelope.
"""


class ServiceError(Exception):
    code = "INTERNAL"


class NotFoundError(ServiceError):
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    code = "CONFLICT"


class ForbiddenError(ServiceError):
    code = "FORBIDDEN"


class InternalError(ServiceError):
    code = "INTERNAL"


# ── Movies ────────────────────────────────────────────────────────────────────

class MovieNotFoundError(NotFoundError):
    def __init__(self, movie_id: int) -> None:
        self.movie_id = movie_id
        super().__init__(f"Movie {movie_id} not found")


class MovieMetadataNotFoundError(NotFoundError):
    """The metadata provider does not know this id."""

    def __init__(self, movie_id: int) -> None:
        self.movie_id = movie_id
        super().__init__(f"No movie with id {movie_id} exists")


class DuplicateMovieError(ConflictError):
    def __init__(self, movie_id: int) -> None:
        self.movie_id = movie_id
        super().__init__(f"Movie {movie_id} has already been submitted")


class VoteConflictError(ConflictError):
    """A concurrent toggle by the same user won the race."""


class MetadataProviderError(InternalError):
    """The metadata provider is misconfigured or unreachable."""


# ── Movie nights ──────────────────────────────────────────────────────────────

class MovieNightNotFoundError(NotFoundError):
    def __init__(self, movie_night_id: int) -> None:
        self.movie_night_id = movie_night_id
        super().__init__(f"Movie night {movie_night_id} not found")


class NoCurrentMovieNightError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No movie night found")


class MovieNightConflictError(ConflictError):
    def __init__(self) -> None:
        super().__init__("Unable to save movie night, one is already scheduled at that time")
