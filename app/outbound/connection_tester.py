"""
File: app/outbound/connection_tester.py
Path: app/outbound/connection_tester.py

Project: CRM Inbox backend

Purpose:
Connectivity probe for a configured webhook URL (operator "Test
connection" button).

Rules:
- One POST with a synthetic inbound-message payload
- Latency is measured until the response headers are available
- Always bounded by a timeout
- Never raises for network problems and never touches the database
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger("connection_tester")

TEST_MESSAGE = "This is a test message from the dashboard"


@dataclass(frozen=True)
class ProbeResult:
    success: bool
    response_time_ms: int
    message: str
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "success": self.success,
            "response_time_ms": self.response_time_ms,
            "message": self.message,
        }
        if self.status_code is not None:
            body["status_code"] = self.status_code
        return body


def build_test_payload() -> Dict[str, Any]:
    return {
        "test": True,
        "from": "test",
        "fromName": "Test Connection",
        "message": TEST_MESSAGE,
        "timestamp": int(time.time() * 1000),
    }


class ConnectionTester:
    def __init__(
        self,
        timeout: float,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session or requests.Session()

    def test(self, url: str) -> ProbeResult:
        logger.info("Testing webhook connection to: %s", url)

        started = time.monotonic()
        try:
            resp = self._session.post(
                url,
                json=build_test_payload(),
                headers={"Content-Type": "application/json"},
                timeout=self._timeout,
                stream=True,
            )
        except requests.RequestException as exc:
            elapsed_ms = _elapsed_ms(started)
            logger.warning("Webhook test failed after %sms: %s", elapsed_ms, exc)
            return ProbeResult(
                success=False,
                response_time_ms=elapsed_ms,
                message=str(exc) or "Failed to connect to webhook",
            )

        elapsed_ms = _elapsed_ms(started)
        resp.close()

        ok = 200 <= resp.status_code < 300
        logger.info(
            "Webhook test %s - Status: %s, Time: %sms",
            "successful" if ok else "failed",
            resp.status_code,
            elapsed_ms,
        )

        return ProbeResult(
            success=ok,
            status_code=resp.status_code,
            response_time_ms=elapsed_ms,
            message=(
                "Webhook is responding correctly"
                if ok
                else f"Webhook returned status {resp.status_code}"
            ),
        )


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
