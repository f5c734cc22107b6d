# chbot/sql_rewriter.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlglot import exp

from chbot.sql_errors import ExplicitFormatError, UnsupportedLimitExpression
from chbot.sql_parser import SqlglotParser, StatementParser
from chbot.sql_policy import RewritePolicy
from chbot.sql_validator import validate_statements


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RewriteResult:
    sql: str
    applied: Tuple[str, ...]


def _literal_row_count(node: Optional[exp.Expression]) -> Optional[int]:
    if isinstance(node, exp.Literal) and node.is_int:
        return int(node.name)
    return None


def _pop_trailing_format(query: exp.Query) -> Optional[exp.Expression]:
    """
    Detach the FORMAT clause wherever the parser hung it. On set operations
    it can stay on the rightmost branch instead of the whole query.
    """
    node: Optional[exp.Expression] = query
    while node is not None:
        fmt = node.args.get("format")
        if fmt is not None:
            node.set("format", None)
            return fmt
        node = node.expression if isinstance(node, exp.SetOperation) else None
    return None


def _caps_all_rows(query: exp.Query) -> bool:
    """
    True when a LIMIT set on this node bounds the whole result. ClickHouse
    applies a trailing LIMIT of a UNION to its last branch only, and
    LIMIT n BY col bounds rows per group, not in total.
    """
    if not isinstance(query, exp.Select):
        return False
    limit = query.args.get("limit")
    return not (isinstance(limit, exp.Limit) and limit.args.get("expressions"))


def _wrap(query: exp.Query) -> exp.Select:
    # SELECT * FROM (<query>); the outer SELECT carries LIMIT and FORMAT
    return exp.select("*").from_(query.subquery(), copy=False)


class QueryRewriter:
    """
    Turns untrusted SQL into a single bounded query in the forced format.

    Received -> Parsed -> LimitChecked -> FormatChecked -> Serialized.
    Every failure raises a QueryRewriteError subclass; a returned
    RewriteResult is final and is not checked again downstream.
    """

    def __init__(
        self,
        policy: Optional[RewritePolicy] = None,
        parser: Optional[StatementParser] = None,
    ):
        self.policy = policy or RewritePolicy()
        self.parser = parser or SqlglotParser(self.policy.dialect)

    def rewrite(self, raw_sql: str) -> RewriteResult:
        statements = self.parser.parse(raw_sql)
        query = validate_statements(statements)

        applied: List[str] = []
        explicit_format = _pop_trailing_format(query)
        if not _caps_all_rows(query):
            query = _wrap(query)
            applied.append("wrapped_query")

        self._enforce_limit(query, applied)
        self._enforce_format(query, explicit_format, applied)

        sql = self.parser.to_sql(query)
        logger.debug("rewrote query (%s): %s", ", ".join(applied) or "unchanged", sql)
        return RewriteResult(sql=sql, applied=tuple(applied))

    def _enforce_limit(self, query: exp.Select, applied: List[str]) -> None:
        max_rows = self.policy.max_rows
        limit = query.args.get("limit")

        # If LIMIT missing, add it.
        if limit is None:
            query.set("limit", exp.Limit(expression=exp.Literal.number(max_rows)))
            applied.append("added_limit")
            return

        row_count = _literal_row_count(limit.expression) if isinstance(limit, exp.Limit) else None
        if row_count is None:
            raise UnsupportedLimitExpression(
                f"LIMIT must be a plain number (at most {max_rows}), got `{limit.sql(dialect=self.policy.dialect)}`"
            )

        # If LIMIT present, cap it. Smaller limits are the caller's choice.
        if row_count > max_rows:
            limit.set("expression", exp.Literal.number(max_rows))
            applied.append("capped_limit")

    def _enforce_format(
        self,
        query: exp.Select,
        current: Optional[exp.Expression],
        applied: List[str],
    ) -> None:
        forced = self.policy.forced_format

        if current is not None:
            query.set("format", current)
            # Already-rewritten queries carry the forced format; keep them stable
            if current.name == forced:
                return
            raise ExplicitFormatError("Please don't put any FORMAT")

        query.set("format", exp.to_identifier(forced))
        applied.append("forced_format")


def rewrite_sql(raw_sql: str, policy: Optional[RewritePolicy] = None) -> RewriteResult:
    return QueryRewriter(policy).rewrite(raw_sql)
