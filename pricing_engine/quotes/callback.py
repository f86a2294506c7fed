"""Best-effort delivery of job results to a caller-supplied callback URL."""

from __future__ import annotations

import httpx
import structlog

from pricing_engine.kernel.errors import CallbackDeliveryError
from pricing_engine.monitoring import get_metrics
from pricing_engine.quotes.models import NotificationPayload

logger = structlog.get_logger()


class CallbackNotifier:
    """
    POSTs notification payloads. Delivery is fire-and-forget: failures are
    logged and swallowed, and nothing is retried.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def notify(self, url: str | None, payload: NotificationPayload) -> bool:
        if not url:
            logger.warning("No callbackUrl provided, skipping callback", job_id=payload.job_id)
            return False

        try:
            await self._post(url, payload)
        except CallbackDeliveryError as exc:
            get_metrics().track_callback("failed")
            logger.error(
                "Failed to execute callback",
                job_id=payload.job_id,
                callback_url=url,
                error=exc.message,
                **exc.meta,
            )
            return False

        get_metrics().track_callback("delivered")
        logger.info("Callback executed successfully", job_id=payload.job_id)
        return True

    async def _post(self, url: str, payload: NotificationPayload) -> None:
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    url,
                    json=payload.to_callback_body(),
                    headers={"Content-Type": "application/json"},
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise CallbackDeliveryError(message=f"Callback request failed: {exc}") from exc

        if response.status_code >= 400:
            raise CallbackDeliveryError(
                message=f"Callback endpoint returned HTTP {response.status_code}",
                meta={"status_code": response.status_code},
            )
