"""Async JSON-RPC client for X1 (a Solana fork)."""

from __future__ import annotations

import asyncio
import json
import logging
import random
import time
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from x1_rewards.errors import RPCError, SetupError

DEFAULT_RPC_URL = "https://rpc.mainnet.x1.xyz"
DEFAULT_TIMEOUT_SECONDS = 35.0
MAX_RPC_RETRIES = 3
RETRY_BACKOFF_SECONDS = 1.0
MAX_RETRY_BACKOFF_SECONDS = 12.0
RETRY_BACKOFF_JITTER = 0.25
RATE_LIMIT_STATUS_CODES = {429}
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
ENDPOINT_ROTATION_STATUS_CODES = {429, 503}


class ChainClient(Protocol):
    async def get_current_epoch(self) -> int:
        ...

    async def get_inflation_reward(self, identity: str, epoch: int) -> Optional[Dict[str, Any]]:
        ...

    async def get_block_time(self, slot: int) -> Optional[int]:
        ...


def safe_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


def summarize_payload(payload: Any, limit: int = 400) -> str:
    try:
        serialized = json.dumps(payload, default=str)
    except TypeError:
        serialized = str(payload)
    if len(serialized) > limit:
        return serialized[: limit - 3] + "..."
    return serialized


class X1RPCClient:
    def __init__(
        self,
        endpoints: Sequence[str],
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = MAX_RPC_RETRIES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        normalized: List[str] = []
        for endpoint in endpoints:
            value = str(endpoint).strip()
            if value and value not in normalized:
                normalized.append(value)
        if not normalized:
            raise RPCError("At least one RPC endpoint must be provided")

        self.endpoints = normalized
        self._current_index = 0
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._request_id = 0
        self._unhealthy: Dict[str, float] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

    async def __aenter__(self) -> "X1RPCClient":
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def endpoint(self) -> str:
        return self.endpoints[self._current_index]

    async def request(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if self._client is None:
            raise RuntimeError("RPC client not initialized; use async context manager")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params or [],
        }

        attempt = 0
        while True:
            attempt += 1
            endpoint = self.endpoint
            self.logger.debug(
                "RPC Request -> method=%s attempt=%d endpoint=%s payload=%s",
                method,
                attempt,
                endpoint,
                summarize_payload(payload),
            )
            try:
                response = await self._client.post(endpoint, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                status_code = exc.response.status_code
                if status_code not in RETRYABLE_STATUS_CODES or attempt >= self._max_retries:
                    raise RPCError(f"HTTP error on method {method}: {exc}") from exc
                if status_code in RATE_LIMIT_STATUS_CODES:
                    self.logger.info("Rate limit on %s attempt=%d via %s", method, attempt, endpoint)
                else:
                    self.logger.warning("HTTP error on %s attempt %d via %s: %s", method, attempt, endpoint, exc)
                if status_code in ENDPOINT_ROTATION_STATUS_CODES:
                    self._rotate_endpoint(endpoint, 5.0)
                delay = self._compute_retry_delay(attempt, status_code)
            except httpx.RequestError as exc:
                self.logger.warning("Request error on %s attempt %d via %s: %s", method, attempt, endpoint, exc)
                if attempt >= self._max_retries:
                    raise RPCError(f"Request error on method {method}: {exc}") from exc
                self._rotate_endpoint(endpoint, 30.0)
                delay = self._compute_retry_delay(attempt, None)
            except ValueError as exc:
                raise RPCError(f"Malformed response on method {method}: {exc}") from exc
            else:
                self.logger.debug(
                    "RPC Response <- method=%s attempt=%d status=%s body=%s",
                    method,
                    attempt,
                    response.status_code,
                    summarize_payload(data),
                )
                if not isinstance(data, dict):
                    raise RPCError(f"Unexpected response shape on method {method}: {summarize_payload(data)}")
                if "error" in data:
                    error = data["error"] or {}
                    message = error.get("message", "Unknown RPC error") if isinstance(error, dict) else str(error)
                    raise RPCError(f"RPC error on method {method}: {message}")
                self._unhealthy.pop(endpoint, None)
                return data.get("result")

            await asyncio.sleep(delay)

    async def get_epoch_info(self) -> Dict[str, Any]:
        result = await self.request("getEpochInfo")
        if not isinstance(result, dict):
            raise RPCError("Failed to retrieve epoch info")
        return result

    async def get_current_epoch(self) -> int:
        epoch = safe_int((await self.get_epoch_info()).get("epoch"))
        if epoch is None:
            raise RPCError("Epoch info did not include an epoch number")
        return epoch

    async def get_inflation_reward(self, identity: str, epoch: int) -> Optional[Dict[str, Any]]:
        result = await self.request("getInflationReward", [[identity], {"epoch": epoch}])
        if not result:
            return None
        if not isinstance(result, list):
            raise RPCError(f"Unexpected getInflationReward result: {summarize_payload(result)}")
        return result[0]

    async def get_block_time(self, slot: int) -> Optional[int]:
        return safe_int(await self.request("getBlockTime", [slot]))

    async def get_balance(self, identity: str) -> int:
        result = await self.request("getBalance", [identity])
        if isinstance(result, dict):
            result = result.get("value")
        return safe_int(result) or 0

    async def get_vote_accounts(self) -> Dict[str, Any]:
        return await self.request("getVoteAccounts") or {}

    async def find_vote_account(self, identity: str) -> Dict[str, Any]:
        vote_accounts = await self.get_vote_accounts()
        for category in ("current", "delinquent"):
            for entry in vote_accounts.get(category, []) or []:
                if entry.get("votePubkey") == identity:
                    return entry
        raise SetupError(f"Vote account not found: {identity}")

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _rotate_endpoint(self, failed_endpoint: str, cooldown: float) -> None:
        self._unhealthy[failed_endpoint] = time.monotonic() + cooldown
        if len(self.endpoints) == 1:
            return
        now = time.monotonic()
        for _ in range(len(self.endpoints)):
            self._current_index = (self._current_index + 1) % len(self.endpoints)
            candidate = self.endpoints[self._current_index]
            if self._unhealthy.get(candidate, 0.0) <= now:
                self.logger.warning("Switching RPC endpoint to %s", candidate)
                return

    def _compute_retry_delay(self, attempt: int, status_code: Optional[int]) -> float:
        base = RETRY_BACKOFF_SECONDS
        if status_code in RATE_LIMIT_STATUS_CODES:
            backoff = base * (2 ** (attempt - 1))
        else:
            backoff = base * attempt
        delay = min(backoff, MAX_RETRY_BACKOFF_SECONDS)
        return delay + random.uniform(0.0, RETRY_BACKOFF_JITTER)
