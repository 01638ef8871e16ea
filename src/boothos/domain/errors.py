"""Error taxonomy surfaced by the photo pipeline."""


class BoothError(Exception):
    """Base error carrying an HTTP-equivalent status code."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, object]:
        """Return a JSON-serializable error body."""
        return {"error": self.message}


class ValidationError(BoothError):
    """Malformed or missing input."""

    status_code = 400


class NotFound(BoothError):
    """Event, photo, background or production is missing."""

    status_code = 404


class Forbidden(BoothError):
    """The event plan or caller role does not permit the feature."""

    status_code = 403


class PaymentRequired(BoothError):
    """Payment is incomplete or a quota is exhausted."""

    status_code = 402


class UpstreamFailure(BoothError):
    """An external dependency failed."""

    status_code = 502

    def __init__(
        self, message: str, failures: list[dict[str, object]] | None = None
    ) -> None:
        super().__init__(message)
        self.failures = failures or []

    def to_payload(self) -> dict[str, object]:
        payload = super().to_payload()
        if self.failures:
            payload["failures"] = self.failures
        return payload


class ExpiredOrInvalid(BoothError):
    """Guest token is unknown, expired or already used."""

    status_code = 404

    def __init__(self, message: str = "Invalid or expired link.") -> None:
        super().__init__(message)


class LinkExpired(ExpiredOrInvalid):
    """Download link exists but is past its expiry."""

    status_code = 410

    def __init__(self, message: str = "Download link expired.") -> None:
        super().__init__(message)
