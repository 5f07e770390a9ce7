"""
Remote Replica Client.

Applies queued operations to the cloud copy over HTTP. Each operation is
posted on its own so the queue can stop exactly at the first rejection.

Request body:
    {"type": "UPDATE_MEMO", "payload": {...}, "enqueuedAt": "...", "userId": "..."}

Any 2xx response means applied. 4xx/5xx responses, transport errors and an
open circuit breaker all count as "not applied"; the caller decides what to
do next. No retries happen here.
"""

from typing import Protocol

import aiobreaker
import httpx

from memos.core.exceptions import ExternalServiceError
from memos.core.logging import get_logger
from memos.core.resilience import create_circuit_breaker
from memos.schemas.sync import SyncOperation

logger = get_logger(__name__)


class RemoteReplica(Protocol):
    """Something that can apply one operation to the remote copy."""

    async def apply(self, op: SyncOperation) -> bool: ...


class SessionLike(Protocol):
    def current_user_id(self) -> str | None: ...


class HttpRemoteReplica:
    """
    Remote replica reached through the serverless sync endpoint.

    Args:
        endpoint: Absolute URL of the sync function
        session: Supplies the user id sent with every operation
        token: Bearer token, sent when non-empty
        timeout: Per-request timeout in seconds
        breaker: Circuit breaker guarding the endpoint
        client: Pre-built httpx client (tests pass one with a MockTransport)
    """

    def __init__(
        self,
        endpoint: str,
        session: SessionLike,
        token: str = "",
        timeout: float = 10.0,
        breaker: aiobreaker.CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.endpoint = endpoint
        self._session = session
        self._breaker = breaker or create_circuit_breaker("remote_replica")
        headers = {"Content-Type": "application/json", "X-Frontend-ID": "memos"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._headers = headers
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def apply(self, op: SyncOperation) -> bool:
        """
        Post one operation.

        Returns:
            True when the remote accepted the operation

        Raises:
            ExternalServiceError: On rejection, transport failure or open breaker
        """
        body = {
            "type": op.type.value,
            "payload": op.payload,
            "enqueuedAt": op.enqueued_at.isoformat(),
            "userId": self._session.current_user_id(),
        }
        try:
            response = await self._breaker.call_async(self._post, body)
        except aiobreaker.CircuitBreakerError as e:
            raise ExternalServiceError(f"Remote replica unavailable: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ExternalServiceError(
                f"Remote replica rejected {op.type.value}: HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"Remote replica unreachable: {e}") from e

        logger.debug(
            "Operation applied remotely",
            source="sync",
            extra={"op_id": op.id, "type": op.type.value, "status": response.status_code},
        )
        return True

    async def _post(self, body: dict) -> httpx.Response:
        response = await self._client.post(self.endpoint, json=body, headers=self._headers)
        response.raise_for_status()
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
