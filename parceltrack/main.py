# FastAPI アプリケーションのエントリーポイント。

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .logging_config import configure_logging, get_logger
from .models import ErrorResponse, HealthResponse
from .relay import RelayHandler
from .settings import Settings, get_settings
from .tracking_client import ORDER_ID_PARAM, TrackingClient

LOGGER = get_logger(__name__)

T = TypeVar("T")

TRACKING_PATH = "/apps/parceltrack"
HEALTH_MESSAGE = "Parcel tracking relay is running"
ORIGIN_NOT_ALLOWED = "Origin not allowed."

# 切断検知のポーリング間隔（秒）。
DISCONNECT_POLL_INTERVAL = 0.2

# クライアント切断時に返すステータス（nginx 由来の慣例）。
CLIENT_CLOSED_REQUEST = 499


# 許可リストに含まれない Origin かどうかを判定する。
# 引数:
#     origin (Optional[str]): リクエストの Origin ヘッダー。
#     allowed (tuple[str, ...]): 許可された Origin の一覧。"*" は全許可。
# 返り値:
#     bool: 拒否すべき場合は True。Origin ヘッダーが無い場合は常に False。
def _origin_rejected(origin: Optional[str], allowed: tuple[str, ...]) -> bool:
    if not origin:
        return False
    if "*" in allowed:
        return False
    return origin.rstrip("/") not in allowed


# 設定・クライアント・ルートを組み立てた FastAPI アプリケーションを生成する。
# 引数:
#     settings (Optional[Settings]): 省略時は環境変数から読み込む。
#     tracking_client (Optional[TrackingClient]): 省略時は設定値から生成する。
# 返り値:
#     FastAPI: 初期設定済みのアプリケーションインスタンス。
def create_application(
    settings: Optional[Settings] = None,
    tracking_client: Optional[TrackingClient] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if tracking_client is None:
        tracking_client = TrackingClient(
            settings.upstream_api_url_base,
            settings.upstream_api_token,
            timeout=settings.upstream_timeout,
        )

    app = FastAPI(title="parceltrack relay", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.tracking_client = tracking_client
    app.state.relay_handler = RelayHandler(settings, tracking_client)

    @app.middleware("http")
    # 許可されていない Origin からのリクエストを 403 で拒否するミドルウェア。
    # 引数:
    #     request (Request): 受信した HTTP リクエスト。
    #     call_next: 後続処理を呼び出す FastAPI のコールバック。
    # 返り値:
    #     Response: 拒否レスポンスまたは本来の応答。
    async def enforce_allowed_origins(request: Request, call_next):
        origin = request.headers.get("origin")
        if _origin_rejected(origin, settings.allowed_origins):
            LOGGER.warning(
                "Rejected request from disallowed origin",
                extra={"origin": origin, "path": request.url.path},
            )
            return JSONResponse(
                status_code=status.HTTP_403_FORBIDDEN,
                content={"error": ORIGIN_NOT_ALLOWED},
            )
        return await call_next(request)

    register_routes(app)
    register_events(app)

    return app


# ヘルスチェックと追跡中継のルートを FastAPI アプリに登録する。
# 引数:
#     app (FastAPI): ルートを追加する対象アプリケーション。
def register_routes(app: FastAPI) -> None:

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    @app.get("/healthz", response_model=HealthResponse, tags=["health"], include_in_schema=False)
    # 稼働状況を確認するための固定レスポンスを返す。
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            message=HEALTH_MESSAGE,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    @app.get(
        TRACKING_PATH,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
            status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
            status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse},
            status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ErrorResponse},
        },
        tags=["tracking"],
    )
    # 注文 ID を上流の追跡 API へ中継し、ステータスと本文をそのまま返す。
    # クライアントが先に切断した場合は上流呼び出しを取り消す。
    # 引数:
    #     request (Request): 受信した HTTP リクエスト。
    # 返り値:
    #     Response: 常に application/json のレスポンス。
    async def track_order(request: Request) -> Response:
        handler: RelayHandler = request.app.state.relay_handler
        order_id = request.query_params.get(ORDER_ID_PARAM)

        outbound = await run_unless_disconnected(request, handler.handle(order_id))
        if outbound is None:
            LOGGER.warning(
                "Client disconnected before tracking response; upstream call cancelled",
                extra={"orderId": order_id},
            )
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        return JSONResponse(status_code=outbound.status_code, content=outbound.body)


# 処理の完了とクライアント切断のどちらか早い方を待つ。
# 切断が先の場合は処理を取り消して None を返す。
# 引数:
#     request (Request): 切断を監視するリクエスト。
#     awaitable (Awaitable[T]): 実行する処理。
# 返り値:
#     Optional[T]: 処理結果。切断された場合は None。
async def run_unless_disconnected(request: Request, awaitable: Awaitable[T]) -> Optional[T]:
    work = asyncio.ensure_future(awaitable)
    watcher = asyncio.ensure_future(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work.done():
            work.cancel()
    if work in done:
        return work.result()
    return None


# クライアントが切断するまで待機する。
# 引数:
#     request (Request): 監視対象のリクエスト。
async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


# 起動時と終了時のイベントハンドラーを FastAPI に登録する。
# 引数:
#     app (FastAPI): イベントを設定する対象アプリケーション。
def register_events(app: FastAPI) -> None:

    @app.on_event("startup")
    # 起動時に設定内容を記録し、トークン未設定なら警告する。
    async def on_startup() -> None:
        settings: Settings = app.state.settings
        LOGGER.info(
            "Startup complete",
            extra={
                "targetUrl": settings.upstream_api_url_base,
                "tokenConfigured": settings.token_configured,
                "allowedOrigins": ",".join(settings.allowed_origins) or "-",
                "timeout": settings.upstream_timeout,
            },
        )
        if not settings.token_configured:
            # 起動は継続し、/health などは応答できるようにする。
            LOGGER.warning("UPSTREAM_API_TOKEN is not set; tracking requests will fail with 500")

    @app.on_event("shutdown")
    # 終了時に上流クライアントのコネクションを解放する。
    async def on_shutdown() -> None:
        client: TrackingClient = app.state.tracking_client
        await client.aclose()


app = create_application()
