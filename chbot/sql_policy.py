# chbot/sql_policy.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any


FORMAT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")


class InvalidPolicyValue(ValueError):
    code: str = "invalid_policy_value"


@dataclass(frozen=True)
class RewritePolicy:
    # Hard ceiling on returned rows (clamp only, never raised)
    max_rows: int = 10

    # Output encoding always injected; the renderer only reads this one
    forced_format: str = "CSVWithNames"

    # sqlglot dialect name
    dialect: str = "clickhouse"

    def __post_init__(self) -> None:
        if isinstance(self.max_rows, bool) or not isinstance(self.max_rows, int) or self.max_rows <= 0:
            raise InvalidPolicyValue(f"max_rows must be a positive integer, got {self.max_rows!r}")
        if not isinstance(self.forced_format, str) or not FORMAT_NAME_RE.match(self.forced_format):
            raise InvalidPolicyValue(f"forced_format must be a format name, got {self.forced_format!r}")
        if not self.dialect:
            raise InvalidPolicyValue("dialect must not be empty")

    @classmethod
    def from_values(
        cls,
        max_rows: Any,
        *,
        forced_format: str = "CSVWithNames",
        dialect: str = "clickhouse",
    ) -> "RewritePolicy":
        """
        Build a policy from loosely typed config values (CLI flags, env vars).
        Raises InvalidPolicyValue when max_rows is not a positive integer.
        """
        if isinstance(max_rows, str):
            try:
                max_rows = int(max_rows.strip())
            except ValueError:
                raise InvalidPolicyValue(
                    f"max_rows must be a positive integer, got {max_rows!r}"
                ) from None
        return cls(max_rows=max_rows, forced_format=forced_format, dialect=dialect)
