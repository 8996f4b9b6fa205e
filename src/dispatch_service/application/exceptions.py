from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class ConflictError(AppError):
    pass


class ValidationError(AppError):
    pass


class AlreadySentError(ConflictError):
    """The dedup cache already holds a delivery marker for this message."""


class DeliveryError(AppError):
    """An outbound delivery attempt did not succeed."""

    def __init__(self, detail: str = "", status_code: int | None = None) -> None:
        super().__init__(detail)
        self.status_code = status_code


class RateLimitedError(DeliveryError):
    """The delivery endpoint answered 429."""

    def __init__(self, detail: str = "", retry_after_s: float | None = None) -> None:
        super().__init__(detail, status_code=429)
        self.retry_after_s = retry_after_s


class PersistenceError(AppError):
    pass


class MessageFetchError(PersistenceError):
    """Unsent messages could not be read; aborts the current cycle only."""
