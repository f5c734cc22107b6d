import pytest
import sqlglot

from chbot.sql_policy import RewritePolicy
from chbot.sql_rewriter import QueryRewriter


@pytest.fixture
def policy():
    return RewritePolicy(max_rows=10, forced_format="CSVWithNames")


@pytest.fixture
def rewriter(policy):
    return QueryRewriter(policy)


def canonical(sql: str) -> str:
    """Same text the rewriter would serialize for an already-compliant query."""
    return sqlglot.transpile(sql, read="clickhouse", write="clickhouse", normalize_functions=False)[0]


def limit_of(sql: str) -> int:
    return int(sqlglot.parse_one(sql, read="clickhouse").args["limit"].expression.name)
