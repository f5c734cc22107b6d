# chbot/handler.py
from __future__ import annotations

import logging
from typing import Optional

from chbot.query_executor import DatabaseError, QueryExecutionError, QueryExecutor
from chbot.renderer import RenderError, render_table
from chbot.sql_errors import QueryRewriteError
from chbot.sql_parser import StatementParser
from chbot.sql_policy import RewritePolicy
from chbot.sql_rewriter import QueryRewriter


logger = logging.getLogger(__name__)


MISSING_QUERY_REPLY = "Please provide a query"
GENERIC_FAILURE_REPLY = "Something went wrong while running the query"


class QueryHandler:
    """
    The `query` command: rewrite -> execute -> render -> reply text.
    Per-request failures always end up as a reply, never as an exception.
    """

    def __init__(
        self,
        policy: RewritePolicy,
        executor: QueryExecutor,
        *,
        parser: Optional[StatementParser] = None,
        max_reply_chars: int = 2000,
    ):
        self.rewriter = QueryRewriter(policy, parser)
        self.executor = executor
        self.max_reply_chars = max_reply_chars

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_reply_chars:
            return text
        return text[: self.max_reply_chars - 1] + "…"

    async def handle_query(self, raw_text: Optional[str]) -> str:
        if raw_text is None or not raw_text.strip():
            return MISSING_QUERY_REPLY

        try:
            rewritten = self.rewriter.rewrite(raw_text)
        except QueryRewriteError as e:
            logger.info("rejected query (%s): %s", e.code, e)
            return self._truncate(str(e))

        try:
            result = await self.executor.execute(rewritten.sql)
            return render_table(result.body, max_chars=self.max_reply_chars)
        except DatabaseError as e:
            logger.warning("database rejected `%s` (HTTP %d): %s", rewritten.sql, e.status, e)
            return self._truncate(f"Query failed: {e}")
        except (QueryExecutionError, RenderError):
            logger.exception("query `%s` failed", rewritten.sql)
            return GENERIC_FAILURE_REPLY
