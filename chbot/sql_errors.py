# chbot/sql_errors.py
from __future__ import annotations


# ----------------------------
# Rewrite rejection taxonomy
# ----------------------------

class QueryRewriteError(Exception):
    """
    Base for every per-request rejection raised before a query is executed.
    str(err) is safe to show to the user as-is.
    """
    code: str = "rewrite_error"

class ParseError(QueryRewriteError):
    code = "parse_error"

class MultiStatementError(QueryRewriteError):
    code = "multi_statement"

class UnsupportedStatementError(QueryRewriteError):
    code = "unsupported_statement"

class UnsupportedLimitExpression(QueryRewriteError):
    code = "unsupported_limit"

class ExplicitFormatError(QueryRewriteError):
    code = "explicit_format"
