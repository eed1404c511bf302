"""
GitHub Webhook 接入层（HTTP 薄壳）。

职责：
- 读取原始 body 与 `X-GitHub-Event` / `X-Hub-Signature-256`
- 交给 `EventDispatcher.handle_delivery`（签名校验、分类、去重都在那里）
- 把结果原样转成 HTTP 状态码 + JSON
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi import Header
from fastapi import Request
from fastapi.responses import JSONResponse

from app.review.dispatcher import EventDispatcher


def build_github_webhook_router(dispatcher: EventDispatcher) -> APIRouter:
    router = APIRouter()

    @router.post("/webhook")
    async def github_webhook(
        request: Request,
        x_github_event: str | None = Header(default=None, alias="X-GitHub-Event"),
        x_hub_signature_256: str | None = Header(default=None, alias="X-Hub-Signature-256"),
    ) -> JSONResponse:
        body = await request.body()
        result = await dispatcher.handle_delivery(body=body, event_type=x_github_event, signature=x_hub_signature_256)
        return JSONResponse(status_code=result.status_code, content=result.body)

    return router
