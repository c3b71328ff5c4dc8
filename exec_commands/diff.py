"""
Diff rendering between original and updated documents

Hunks come from difflib.SequenceMatcher with three lines of context. Each
line carries its old and new line numbers.
"""

import difflib
from typing import List, Optional

CONTEXT_LINES = 3
SEPARATOR_WIDTH = 80


class Colors:
    """ANSI color codes for terminal output."""
    RED = '\033[0;31m'
    GREEN = '\033[0;32m'
    DIM = '\033[2m'
    BOLD = '\033[1m'
    NC = '\033[0m'  # No Color


def _paint(text: str, *codes: str, color: bool) -> str:
    if not color or not text:
        return text
    return "".join(codes) + text + Colors.NC


def _lineno(index: Optional[int]) -> str:
    if index is None:
        return "    "
    return f"{index + 1:<4}"


def split_keepends(text: str) -> List[str]:
    """Split on newlines only, keeping them; the last line may lack one."""
    parts = text.split("\n")
    lines = [part + "\n" for part in parts[:-1]]
    if parts[-1]:
        lines.append(parts[-1])
    return lines


def _render_line(old: Optional[int], new: Optional[int], sign: str, line: str, color: bool) -> str:
    style = {"-": (Colors.RED,), "+": (Colors.GREEN,), " ": (Colors.DIM,)}[sign]
    body = line[:-1] if line.endswith("\n") else line
    numbers = _paint(f"{_lineno(old)}{_lineno(new)}", Colors.DIM, color=color)
    return f"{numbers} |{_paint(sign, *style, Colors.BOLD, color=color)}{_paint(body, *style, color=color)}\n"


def render_diff(filename: str, old: str, new: str, color: bool = False) -> str:
    """
    Render a line diff of `old` against `new`.

    Args:
        filename: Name shown in the header
        old: Original text
        new: Updated text
        color: Emit ANSI colors

    Returns:
        Rendered diff, or an empty string if the texts are equal
    """
    a = split_keepends(old)
    b = split_keepends(new)
    matcher = difflib.SequenceMatcher(None, a, b, autojunk=False)

    out: List[str] = []
    for idx, group in enumerate(matcher.get_grouped_opcodes(CONTEXT_LINES)):
        if idx == 0:
            out.append(f"--- {filename}.original\n+++ {filename}.updated\n")
        else:
            out.append("-" * SEPARATOR_WIDTH + "\n")

        for tag, i1, i2, j1, j2 in group:
            if tag == "equal":
                for k in range(i2 - i1):
                    out.append(_render_line(i1 + k, j1 + k, " ", a[i1 + k], color))
                continue
            if tag in ("delete", "replace"):
                for i in range(i1, i2):
                    out.append(_render_line(i, None, "-", a[i], color))
            if tag in ("insert", "replace"):
                for j in range(j1, j2):
                    out.append(_render_line(None, j, "+", b[j], color))

    return "".join(out)
