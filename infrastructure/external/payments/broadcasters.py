"""
HTTP broadcaster for settlement outcomes.

Posts the normalized result as JSON. When a signing secret is configured the
body is signed with base64(HMAC-SHA256) in the `X-Pay-Signature` header.
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from core.logging_config import get_logger


logger = get_logger(__name__)

SIGNATURE_HEADER = "X-Pay-Signature"


def hmac_sha256_b64(secret: str, payload: bytes) -> str:
    mac = hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest()
    return base64.b64encode(mac).decode("utf-8")


class HttpBroadcaster:
    def __init__(
        self,
        url: str,
        *,
        signing_secret: Optional[str] = None,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.url = url
        self.signing_secret = signing_secret
        self.timeout = timeout
        self._transport = transport

    def broadcast(self, result: Any) -> bool:
        payload = result.model_dump(mode="json") if isinstance(result, BaseModel) else result
        body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self.signing_secret:
            headers[SIGNATURE_HEADER] = hmac_sha256_b64(self.signing_secret, body)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.url, content=body, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("pay_broadcast_http_failed", url=self.url, error=str(exc))
            return False
        logger.debug("pay_broadcast_sent", url=self.url, status_code=resp.status_code)
        return True
