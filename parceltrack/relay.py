# 追跡リクエストを上流 API へ中継するハンドラー。

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from .errors import (
    ClientInputError,
    RelayError,
    ServerConfigurationError,
    UpstreamContractError,
    UpstreamUnavailableError,
)
from .logging_config import get_logger
from .settings import Settings
from .tracking_client import TrackingClient, UpstreamResponse

LOGGER = get_logger(__name__)

BODY_PREVIEW_CHARS = 500


# NaN や Infinity は標準 JSON ではないため受け付けない。
def _reject_constant(name: str) -> None:
    raise ValueError(f"Non-standard JSON constant: {name}")


# 呼び出し元へ返す HTTP ステータスと JSON 本文の組。
@dataclass(frozen=True, slots=True)
class OutboundResponse:
    status_code: int
    body: Any


# 1 リクエストにつき 1 回だけ上流を呼び出し、結果を JSON レスポンスに正規化するクラス。
# リクエスト間で状態を持たない。
class RelayHandler:

    # 引数:
    #     settings (Settings): 起動時に読み込んだ設定。
    #     client (TrackingClient): 上流 API クライアント。
    def __init__(self, settings: Settings, client: TrackingClient) -> None:
        self._settings = settings
        self._client = client

    # 注文 ID を検証して上流へ中継し、結果を返す。例外は外へ送出しない。
    # 引数:
    #     order_id (Optional[str]): クエリの channel_order_no の値。
    # 返り値:
    #     OutboundResponse: 呼び出し元へ返すステータスと本文。
    async def handle(self, order_id: Optional[str]) -> OutboundResponse:
        request_timestamp = datetime.now(timezone.utc).isoformat()
        log_context = {
            "requestTimestamp": request_timestamp,
            "orderId": order_id,
            "targetUrl": self._settings.upstream_api_url_base,
        }
        try:
            result = await self._relay(order_id, log_context)
        except RelayError as exc:
            result = OutboundResponse(status_code=exc.status_code, body=exc.to_body())
        except Exception:
            # 想定外の失敗も上流到達不可として扱い、トランスポート層へは漏らさない。
            LOGGER.exception("Unexpected error while relaying tracking request", extra=log_context)
            fallback = UpstreamUnavailableError()
            result = OutboundResponse(status_code=fallback.status_code, body=fallback.to_body())

        LOGGER.info("Tracking request completed", extra={**log_context, "status": result.status_code})
        return result

    async def _relay(self, order_id: Optional[str], log_context: dict) -> OutboundResponse:
        if not order_id:
            LOGGER.warning("Request received without order id", extra=log_context)
            raise ClientInputError()

        if not self._settings.token_configured:
            LOGGER.critical(
                "UPSTREAM_API_TOKEN is not configured; cannot process request",
                extra=log_context,
            )
            raise ServerConfigurationError()

        LOGGER.info("Relaying tracking request", extra=log_context)
        upstream = await self._client.fetch(order_id)
        return self._normalise(upstream, log_context)

    @staticmethod
    def _normalise(upstream: UpstreamResponse, log_context: dict) -> OutboundResponse:
        try:
            payload = json.loads(upstream.raw_body, parse_constant=_reject_constant)
        except ValueError as exc:
            LOGGER.error(
                "Tracking API response was not valid JSON",
                extra={
                    **log_context,
                    "upstreamStatus": upstream.status_code,
                    "bodyPreview": upstream.raw_body[:BODY_PREVIEW_CHARS],
                },
            )
            raise UpstreamContractError(upstream.status_code) from exc

        LOGGER.debug(
            "Tracking API responded",
            extra={**log_context, "upstreamStatus": upstream.status_code},
        )
        return OutboundResponse(status_code=upstream.status_code, body=payload)


__all__ = ["BODY_PREVIEW_CHARS", "OutboundResponse", "RelayHandler"]
