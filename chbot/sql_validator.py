# chbot/sql_validator.py
from __future__ import annotations

from typing import List

from sqlglot import exp

from chbot.sql_errors import MultiStatementError, UnsupportedStatementError


def _statement_kind(statement: exp.Expression) -> str:
    if isinstance(statement, exp.Command):
        # Unparsed commands keep their keyword in `this`, e.g. "SHOW"
        return str(statement.this).upper()
    return type(statement).__name__.upper()


def validate_statements(statements: List[exp.Expression]) -> exp.Query:
    """
    Statement-shape gate in front of the rewriter.

    Only a single query-shaped statement gets through: anything else could
    smuggle a second statement past the LIMIT/FORMAT rewrite, or has no
    LIMIT/FORMAT to enforce in the first place.
    """
    # 1) Exactly one statement (no "SELECT 1; DROP TABLE x")
    if len(statements) != 1:
        raise MultiStatementError("Only one query is allowed")

    statement = statements[0]

    # 2) Must be SELECT, a set operation, or a parenthesized query
    if not isinstance(statement, exp.Query):
        raise UnsupportedStatementError(
            f"Only SELECT queries are allowed, got {_statement_kind(statement)}"
        )

    return statement
