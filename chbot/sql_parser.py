# chbot/sql_parser.py
from __future__ import annotations

from typing import List, Protocol

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from chbot.sql_errors import ParseError


class StatementParser(Protocol):
    """
    What the rewriter needs from a grammar: text -> statements, and
    statement -> text after mutation. Swap implementations to change dialect.
    """

    def parse(self, raw_sql: str) -> List[exp.Expression]:
        ...

    def to_sql(self, statement: exp.Expression) -> str:
        ...


class SqlglotParser:
    def __init__(self, dialect: str = "clickhouse"):
        self.dialect = dialect

    def parse(self, raw_sql: str) -> List[exp.Expression]:
        if raw_sql is None or not raw_sql.strip():
            raise ParseError("Empty query")

        try:
            parsed = sqlglot.parse(raw_sql, read=self.dialect)
        except SqlglotError as e:
            raise ParseError(_first_line(str(e))) from e

        # sqlglot yields None for empty statements, e.g. after a trailing ";"
        return [stmt for stmt in parsed if stmt is not None]

    def to_sql(self, statement: exp.Expression) -> str:
        # Keep function names in the case they were written; they become
        # CSVWithNames column headers
        return statement.sql(dialect=self.dialect, normalize_functions=False)


def _first_line(message: str) -> str:
    # sqlglot appends a highlighted excerpt of the query after the first line
    return message.strip().splitlines()[0] if message.strip() else "Invalid SQL"
