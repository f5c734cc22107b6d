# chbot/query_executor.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode, urljoin

import aiohttp


logger = logging.getLogger(__name__)


# ----------------------------
# Error taxonomy
# ----------------------------

class QueryExecutionError(Exception):
    code: str = "execution_error"

class TransportError(QueryExecutionError):
    code = "transport_error"

class DatabaseError(QueryExecutionError):
    code = "database_error"

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


# ----------------------------
# Result object
# ----------------------------

@dataclass(frozen=True)
class ExecutionResult:
    body: str
    status: int
    elapsed_ms: int


def build_url(base_url: str, user: str, password: str) -> str:
    """Embed credentials as query parameters, the way the HTTP interface expects them."""
    qs = urlencode({"user": user, "password": password})
    return urljoin(base_url, f"?{qs}")


# ----------------------------
# Executor
# ----------------------------

class QueryExecutor:
    """
    Final trust boundary.
    Assumes SQL has already gone through QueryRewriter; sends it as-is.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout_s: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url
        self.timeout_s = timeout_s
        self.session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self.session

    async def close(self) -> None:
        if self._owns_session and self.session is not None and not self.session.closed:
            await self.session.close()

    async def execute(self, sql: str) -> ExecutionResult:
        session = await self._ensure_session()
        start = time.monotonic()

        try:
            async with session.post(self.url, data=sql.encode("utf-8")) as resp:
                body = await resp.text()
                status = resp.status
        except asyncio.TimeoutError as e:
            raise TransportError(f"timeout after {self.timeout_s}s") from e
        except aiohttp.ClientError as e:
            raise TransportError(str(e) or type(e).__name__) from e

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info("`%s` took %dms", sql, elapsed_ms)

        if status >= 300:
            raise DatabaseError(body.strip() or f"HTTP {status}", status)

        return ExecutionResult(body=body, status=status, elapsed_ms=elapsed_ms)
