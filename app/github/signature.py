"""
GitHub Webhook 签名校验（`X-Hub-Signature-256`，HMAC SHA256）。

格式：`sha256=<hex>`；比较必须是常量时间。
"""

from __future__ import annotations

import hashlib
import hmac
import logging

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="


def compute_github_signature(body: bytes, secret: str) -> str:
    return SIGNATURE_PREFIX + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_github_signature(body: bytes, signature_header: str | None, secret: str) -> bool:
    """签名合法返回 True；缺 header / 缺 secret / 格式不对 / 不匹配都返回 False。"""
    if not signature_header or not secret:
        logger.warning("Missing signature header or webhook secret")
        return False
    if not signature_header.startswith(SIGNATURE_PREFIX):
        logger.warning("Invalid signature header format")
        return False
    expected = compute_github_signature(body=body, secret=secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature_header.encode("utf-8"))
