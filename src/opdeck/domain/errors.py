"""Exception hierarchy for opdeck.

Empty outcomes (no list entries, nothing matched) are reported through
ImportStatus, not raised.
"""


class OpdeckError(Exception):
    """Base exception for all opdeck failures."""


class NetworkError(OpdeckError):
    """A remote call failed for good: permanent status, or retries exhausted.

    ``status`` is None when the transport itself failed (connection, timeout).
    """

    def __init__(self, status: int | None, body: str, url: str | None = None):
        self.status = status
        self.body = body
        self.url = url
        label = str(status) if status is not None else "transport error"
        message = f"{label}: {body}" if body else label
        super().__init__(message)


class ImportInProgressError(OpdeckError):
    """Raised when a second import is started while one is still running."""


class UnsupportedGradeError(OpdeckError, ValueError):
    def __init__(self, grade, policy_name: str):
        self.grade = grade
        self.policy_name = policy_name
        super().__init__(f"Grade '{grade}' is not supported by the '{policy_name}' policy")


class UnknownCardError(OpdeckError, KeyError):
    def __init__(self, card_id: str):
        self.card_id = card_id
        super().__init__(card_id)

    def __str__(self) -> str:
        return f"Unknown card: {self.card_id}"
