from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Any

from lark import Token

class C:
    """ANSI color/style escape codes."""
    RESET = "\x1b[0m"
    BOLD  = "\x1b[1m"
    DIM   = "\x1b[2m"
    RED   = "\x1b[31m"
    YELLOW = "\x1b[33m"
    CYAN  = "\x1b[36m"
    GRAY  = "\x1b[90m"

@dataclass
class Span:
    line: int
    col: int
    end_line: int
    end_col: int

@dataclass
class Diagnostic:
    kind: str
    code: str
    message: str
    span: Optional[Span] = None
    filename: Optional[str] = None
    source: Optional[str] = None

def span_of(t: Any) -> Optional[Span]:
    m = getattr(t, "meta", None)
    if m is not None and not getattr(m, "empty", True):
        return Span(m.line, m.column, m.end_line, m.end_column)
    if isinstance(t, Token):
        line = getattr(t, "line", None)
        col = getattr(t, "column", None)
        end_line = getattr(t, "end_line", None)
        end_col = getattr(t, "end_column", None)
        if line is not None and col is not None:
            return Span(line, col, end_line or line, end_col or col)
    return None


class Reporter:
    """Collects errors, warnings and notes for one link invocation."""

    def __init__(self, source: Optional[str] = None, filename: str = "<input>") -> None:
        self.source = source
        self.filename = filename
        self.items: List[Diagnostic] = []

    def merge(self, other: "Reporter") -> None:
        """Take over the diagnostics collected by a per-file reporter."""
        for d in other.items:
            if d.source is None:
                d.source = other.source
            self.items.append(d)

    def error(self, code: str, msg: str, span: Optional[Span] = None):
        self.items.append(Diagnostic("error", code, msg, span, filename=self.filename))

    def warn(self, code: str, msg: str, span: Optional[Span] = None):
        self.items.append(Diagnostic("warning", code, msg, span, filename=self.filename))

    def note(self, msg: str):
        self.items.append(Diagnostic("note", "", msg, None, filename=self.filename))

    @property
    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.items)

    @property
    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.items)

    def codes(self) -> List[str]:
        return [d.code for d in self.items if d.code]

    def format(self, use_color: bool = True) -> str:
        """Render all diagnostics.

        Errors and warnings get a ``file:line:col: kind [code]: message``
        header, followed by the offending source line and a caret when a
        span is known. Notes are indented under the preceding diagnostic.
        """
        out: List[str] = []
        for d in self.items:
            if d.kind == "note":
                prefix = f"{C.GRAY}  = note:{C.RESET}" if use_color else "  = note:"
                for i, line in enumerate(d.message.splitlines() or [""]):
                    out.append(f"{prefix} {line}" if i == 0 else f"    {line}")
                continue

            filename = d.filename or self.filename
            loc = f"{filename}:{d.span.line}:{d.span.col}" if d.span else filename

            if use_color:
                if d.kind == "error":
                    kind = f"{C.BOLD}{C.RED}error{C.RESET}"
                else:
                    kind = f"{C.BOLD}{C.YELLOW}warning{C.RESET}"
                out.append(f"{C.CYAN}{loc}{C.RESET}: {kind} [{C.DIM}{d.code}{C.RESET}]: {d.message}")
            else:
                out.append(f"{loc}: {d.kind} [{d.code}]: {d.message}")

            source = d.source if d.source is not None else self.source
            src_lines = source.splitlines() if source else None
            if d.span and src_lines is not None:
                line_idx = d.span.line - 1
                line_text = src_lines[line_idx] if 0 <= line_idx < len(src_lines) else ""
                start = max(1, d.span.col)
                out.append(f"  | {line_text}")
                out.append(f"  ` {' ' * (start - 1)}^")

        return "\n".join(out)

    def print(self, stream=None, use_color: Optional[bool] = None) -> None:
        """Print diagnostics to `stream` (default: sys.stderr).

        Color is auto-enabled for TTY unless NO_COLOR or TERM=dumb.
        """
        import os, sys
        stream = stream or sys.stderr

        if use_color is None:
            is_tty = getattr(stream, "isatty", lambda: False)()
            no_color = os.getenv("NO_COLOR") is not None
            dumb = os.getenv("TERM") == "dumb"
            use_color = bool(is_tty and not no_color and not dumb)

        text = self.format(use_color=use_color)
        if text:
            print(text, file=stream)
