"""Pi Network payment rail client.

Talks to the Pi platform API when a real server key is configured, otherwise
returns mock payment objects for development. The core never validates the
references this client hands back; it only records them.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any

import httpx

from pilance.common.exceptions import ExternalServiceError
from pilance.config import settings
from pilance.integrations.base import BaseIntegration


def _is_mock() -> bool:
    return settings.PI_API_KEY.startswith("mock_")


class PiNetworkClient(BaseIntegration):
    """Server-side half of the Pi payment flow (approve, then observe settlement)."""

    def __init__(self) -> None:
        super().__init__("pi_network")
        self.base_url = settings.PI_API_BASE_URL.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Key {settings.PI_API_KEY}"}

    async def health_check(self) -> bool:
        if _is_mock():
            self.logger.info("Pi Network health check: OK (mock)")
            return True
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                resp = await client.get(f"{self.base_url}/payments/incomplete_server_payments", headers=self._headers())
                return resp.status_code == 200
        except httpx.HTTPError as e:
            self.logger.error("Pi Network health check failed: %s", e)
            return False

    async def _request(self, method: str, path: str) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.request(method, f"{self.base_url}{path}", headers=self._headers())
                resp.raise_for_status()
                return resp.json()
        except httpx.HTTPStatusError as e:
            self.logger.error("Pi Network %s %s returned %d", method, path, e.response.status_code)
            raise ExternalServiceError("pi_network", f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            self.logger.error("Pi Network %s %s failed: %s", method, path, e)
            raise ExternalServiceError("pi_network", str(e)) from e

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def get_payment(self, payment_id: str) -> dict[str, Any]:
        if not _is_mock():
            return await self._request("GET", f"/payments/{payment_id}")

        # Mock rail settles every approved payment immediately
        txid = hashlib.sha256(payment_id.encode()).hexdigest()
        self.logger.info("Mock Pi payment lookup: %s", payment_id)
        return {
            "identifier": payment_id,
            "status": {
                "developer_approved": True,
                "transaction_verified": True,
                "developer_completed": False,
                "cancelled": False,
                "user_cancelled": False,
            },
            "transaction": {"txid": txid, "verified": True},
            "created_at": datetime.now(timezone.utc).isoformat(),
        }

    async def approve_payment(self, payment_id: str) -> dict[str, Any]:
        if not _is_mock():
            data = await self._request("POST", f"/payments/{payment_id}/approve")
            self.logger.info("Approved Pi payment: %s", payment_id)
            return data

        self.logger.info("Mock Pi payment approved: %s", payment_id)
        return {
            "identifier": payment_id,
            "status": {
                "developer_approved": True,
                "transaction_verified": False,
                "developer_completed": False,
                "cancelled": False,
                "user_cancelled": False,
            },
            "transaction": None,
        }
