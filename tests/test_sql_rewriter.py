import pytest

from chbot.sql_errors import (
    ExplicitFormatError,
    MultiStatementError,
    ParseError,
    UnsupportedLimitExpression,
)
from chbot.sql_parser import SqlglotParser
from chbot.sql_policy import RewritePolicy
from chbot.sql_rewriter import QueryRewriter, rewrite_sql

from conftest import canonical, limit_of


TABLE = "nxthdr.bgp_updates"


def test_adds_limit_and_format_if_missing(rewriter):
    out = rewriter.rewrite(f"SELECT Count() FROM {TABLE}")
    assert out.sql == "SELECT Count() FROM nxthdr.bgp_updates LIMIT 10 FORMAT CSVWithNames"
    assert out.applied == ("added_limit", "forced_format")


def test_keeps_smaller_limit(rewriter):
    out = rewriter.rewrite(f"SELECT Count() FROM {TABLE} LIMIT 5")
    assert out.sql == "SELECT Count() FROM nxthdr.bgp_updates LIMIT 5 FORMAT CSVWithNames"
    assert "capped_limit" not in out.applied


def test_caps_limit(rewriter):
    out = rewriter.rewrite(f"SELECT Count() FROM {TABLE} LIMIT 50")
    assert out.sql == "SELECT Count() FROM nxthdr.bgp_updates LIMIT 10 FORMAT CSVWithNames"
    assert "capped_limit" in out.applied


@pytest.mark.parametrize("limit", [0, 1, 9, 10])
def test_limit_at_or_below_cap_is_preserved(rewriter, limit):
    out = rewriter.rewrite(f"SELECT * FROM t LIMIT {limit}")
    assert limit_of(out.sql) == limit


@pytest.mark.parametrize("limit", [11, 100, 10 ** 12])
def test_limit_above_cap_is_clamped(rewriter, limit):
    out = rewriter.rewrite(f"SELECT * FROM t LIMIT {limit}")
    assert limit_of(out.sql) == 10


def test_lowercase_limit_is_recognized(rewriter):
    out = rewriter.rewrite("select * from t limit 500")
    assert limit_of(out.sql) == 10
    assert out.applied == ("capped_limit", "forced_format")


def test_offset_survives_clamp(rewriter):
    out = rewriter.rewrite("SELECT * FROM t LIMIT 50 OFFSET 20")
    assert limit_of(out.sql) == 10
    assert "OFFSET 20" in out.sql


def test_nested_limits_are_left_alone(rewriter):
    out = rewriter.rewrite("SELECT * FROM (SELECT * FROM t LIMIT 500) AS s")
    assert "LIMIT 500" in out.sql
    assert limit_of(out.sql) == 10


def test_union_is_wrapped_and_bounded(rewriter):
    out = rewriter.rewrite("SELECT a FROM t UNION ALL SELECT b FROM u")
    assert out.sql == "SELECT * FROM (SELECT a FROM t UNION ALL SELECT b FROM u) LIMIT 10 FORMAT CSVWithNames"
    assert out.applied == ("wrapped_query", "added_limit", "forced_format")
    assert rewriter.rewrite(out.sql).sql == out.sql


def test_union_trailing_limit_stays_on_its_branch(rewriter):
    # ClickHouse applies a LIMIT after UNION ALL to the last SELECT only
    out = rewriter.rewrite("SELECT a FROM t UNION ALL SELECT b FROM u LIMIT 50")
    assert out.sql.startswith("SELECT * FROM (")
    assert out.sql.endswith(") LIMIT 10 FORMAT CSVWithNames")
    assert limit_of(out.sql) == 10
    assert rewriter.rewrite(out.sql).sql == out.sql


def test_limit_by_gets_an_overall_cap(rewriter):
    out = rewriter.rewrite("SELECT * FROM t LIMIT 2 BY peer")
    assert out.sql == "SELECT * FROM (SELECT * FROM t LIMIT 2 BY peer) LIMIT 10 FORMAT CSVWithNames"
    assert limit_of(out.sql) == 10
    assert rewriter.rewrite(out.sql).sql == out.sql


def test_function_names_keep_their_case(rewriter):
    out = rewriter.rewrite("SELECT myLookup(peer) FROM t")
    assert out.sql == "SELECT myLookup(peer) FROM t LIMIT 10 FORMAT CSVWithNames"


def test_other_clauses_are_preserved(rewriter):
    sql = "SELECT peer, count() AS c FROM t WHERE x = 1 GROUP BY peer ORDER BY c DESC LIMIT 3"
    out = rewriter.rewrite(sql)
    assert out.sql == canonical(sql + " FORMAT CSVWithNames")


def test_rewrite_is_idempotent(rewriter):
    first = rewriter.rewrite(f"SELECT Count() FROM {TABLE} LIMIT 50")
    second = rewriter.rewrite(first.sql)
    assert first.sql == "SELECT Count() FROM nxthdr.bgp_updates LIMIT 10 FORMAT CSVWithNames"
    assert second.sql == first.sql
    assert second.applied == ()


def test_trailing_semicolon_is_one_statement(rewriter):
    out = rewriter.rewrite("SELECT 1;")
    assert limit_of(out.sql) == 10


@pytest.mark.parametrize("fmt", ["Pretty", "JSONEachRow", "TabSeparated", "CSV"])
def test_blocks_explicit_format(rewriter, fmt):
    with pytest.raises(ExplicitFormatError, match="FORMAT"):
        rewriter.rewrite(f"SELECT Count() FROM {TABLE} FORMAT {fmt}")


def test_blocks_explicit_format_on_union(rewriter):
    with pytest.raises(ExplicitFormatError):
        rewriter.rewrite("SELECT a FROM t UNION ALL SELECT b FROM u FORMAT Pretty")


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT 1; SELECT 2",
        "SELECT 1; DROP TABLE x",
    ],
)
def test_blocks_multiple_statements(rewriter, sql):
    with pytest.raises(MultiStatementError, match="Only one query is allowed"):
        rewriter.rewrite(sql)


@pytest.mark.parametrize(
    "sql",
    [
        "SELECT * FROM t LIMIT {n:UInt32}",
        "SELECT * FROM t LIMIT 5 + 5",
        "SELECT * FROM t LIMIT -1",
    ],
)
def test_blocks_non_literal_limit(rewriter, sql):
    with pytest.raises(UnsupportedLimitExpression):
        rewriter.rewrite(sql)


@pytest.mark.parametrize("sql", ["", "   ", "SELECT * FROM t WHERE (x = 1"])
def test_parse_errors(rewriter, sql):
    with pytest.raises(ParseError):
        rewriter.rewrite(sql)


def test_policy_drives_rewrite():
    policy = RewritePolicy(max_rows=3, forced_format="TSVWithNames")
    out = rewrite_sql("SELECT * FROM t LIMIT 7", policy=policy)
    assert limit_of(out.sql) == 3
    assert out.sql.endswith("FORMAT TSVWithNames")


def test_default_policy():
    out = rewrite_sql("SELECT * FROM t")
    assert limit_of(out.sql) == 10
    assert out.sql.endswith("FORMAT CSVWithNames")


class RecordingParser(SqlglotParser):
    def __init__(self, statements=None):
        super().__init__("clickhouse")
        self.statements = statements
        self.seen = []

    def parse(self, raw_sql):
        self.seen.append(raw_sql)
        if self.statements is not None:
            return self.statements
        return super().parse(raw_sql)


def test_parser_is_injectable(policy):
    parser = RecordingParser()
    out = QueryRewriter(policy, parser).rewrite("SELECT 1")
    assert parser.seen == ["SELECT 1"]
    assert limit_of(out.sql) == 10


def test_zero_statements_rejected(policy):
    parser = RecordingParser(statements=[])
    with pytest.raises(MultiStatementError):
        QueryRewriter(policy, parser).rewrite("-- nothing here")


def test_rewriter_does_not_share_state_between_calls(rewriter):
    rewriter.rewrite("SELECT * FROM t LIMIT 500")
    out = rewriter.rewrite("SELECT * FROM t")
    assert out.sql == canonical("SELECT * FROM t LIMIT 10 FORMAT CSVWithNames")
