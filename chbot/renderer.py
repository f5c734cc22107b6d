# chbot/renderer.py
from __future__ import annotations

import io
from typing import List, Sequence

import pandas as pd


class RenderError(Exception):
    code: str = "render_error"


CODE_FENCE = "```"
EMPTY_RESULT = "No rows returned."


def read_csv_with_names(text: str) -> pd.DataFrame:
    """Parse a CSVWithNames body; every cell stays text, exactly as the server sent it."""
    try:
        return pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise RenderError(f"response is not valid CSVWithNames: {e}") from e


def _esc(x: str) -> str:
    return x.replace("\r", " ").replace("\n", " ").replace("`", "'")


def _box_lines(columns: Sequence[str], rows: Sequence[Sequence[str]]) -> List[str]:
    widths = [len(c) for c in columns]
    for r in rows:
        for i, v in enumerate(r):
            widths[i] = max(widths[i], len(v))

    def border(left: str, mid: str, right: str) -> str:
        return left + mid.join("─" * (w + 2) for w in widths) + right

    def line(values: Sequence[str]) -> str:
        return "│" + "│".join(f" {v.ljust(w)} " for v, w in zip(values, widths)) + "│"

    out = [border("┌", "┬", "┐"), line(columns), border("├", "┼", "┤")]
    out.extend(line(r) for r in rows)
    out.append(border("└", "┴", "┘"))
    return out


def render_box_table(columns: Sequence[str], rows: Sequence[Sequence[str]]) -> str:
    return "\n".join(_box_lines(columns, rows))


def render_table(text: str, *, max_chars: int = 2000) -> str:
    """
    CSVWithNames body -> monospace table inside a code block, so chat clients
    keep the columns aligned. Rows are dropped from the end until the reply
    fits in max_chars.
    """
    if not text.strip():
        return EMPTY_RESULT

    # short rows come back as NaN even with keep_default_na=False
    df = read_csv_with_names(text).fillna("")
    columns = [_esc(str(c)) for c in df.columns]
    rows = [[_esc(v) for v in r] for r in df.itertuples(index=False, name=None)]

    shown = len(rows)
    while True:
        table = f"{CODE_FENCE}\n{render_box_table(columns, rows[:shown])}\n{CODE_FENCE}"
        hidden = len(rows) - shown
        if hidden:
            table += f"\n… {hidden} more rows not shown"
        if len(table) <= max_chars or shown == 0:
            return table
        shown -= 1
