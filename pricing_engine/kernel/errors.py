from __future__ import annotations

import re
from typing import Any


_ERROR_CODE_RE = re.compile(r"^[a-z][a-z0-9_]*(\.[a-z][a-z0-9_]*)*$")


class PricingEngineError(Exception):
    """Base typed error for the pricing engine.

    - Stable `code` for programmatic handling.
    - Human-readable `message` for callers.
    - Optional `meta` payload for debugging (safe-to-expose only).
    """

    def __init__(
        self,
        *,
        code: str,
        message: str,
        status_code: int = 500,
        meta: dict[str, Any] | None = None,
    ) -> None:
        if not _ERROR_CODE_RE.fullmatch(code):
            raise ValueError(
                "Invalid error code. Expected dot-separated lowercase tokens, "
                f"got: {code!r}"
            )
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = int(status_code)
        self.meta = dict(meta or {})

    def to_public_dict(self) -> dict[str, Any]:
        return {"error": True, "message": self.message}


class NotFoundError(PricingEngineError):
    def __init__(self, *, message: str = "Not found", code: str = "resource.not_found", meta: dict[str, Any] | None = None):
        super().__init__(code=code, message=message, status_code=404, meta=meta)


class UnauthorizedError(PricingEngineError):
    def __init__(
        self,
        *,
        message: str = "Not authenticated",
        code: str = "auth.unauthorized",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=401, meta=meta)


class QueryError(PricingEngineError):
    """A remote read failed. Fatal to the job; nothing has been written yet."""

    def __init__(
        self,
        *,
        message: str = "Record query failed",
        code: str = "upstream.query_failed",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=500, meta=meta)


class InvalidReferenceError(PricingEngineError):
    """A dependent intent pointed at a parent that is not in the unit of work."""

    def __init__(
        self,
        *,
        message: str = "Unknown parent reference",
        code: str = "batch.invalid_reference",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=500, meta=meta)


class CommitError(PricingEngineError):
    """The write backend rejected the whole batch; no records were created."""

    def __init__(
        self,
        *,
        message: str = "Batch commit rejected",
        code: str = "upstream.commit_rejected",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=502, meta=meta)


class QuoteCreationError(PricingEngineError):
    def __init__(
        self,
        *,
        message: str = "Failed to create quote",
        code: str = "quote.creation_failed",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=400, meta=meta)


class CallbackDeliveryError(PricingEngineError):
    """Callback POST failed. Logged and swallowed by the notifier."""

    def __init__(
        self,
        *,
        message: str = "Callback delivery failed",
        code: str = "callback.delivery_failed",
        meta: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, status_code=502, meta=meta)
