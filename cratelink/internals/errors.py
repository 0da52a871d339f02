# cratelink/internals/errors.py
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from cratelink.internals.report import Span, Reporter


class Severity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


class Category(str, Enum):
    GENERAL   = "general"
    METADATA  = "metadata"
    LINK      = "link"
    TOOL      = "tool"
    TARGET    = "target"
    INTERNAL  = "internal"


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    severity: Severity
    text: str
    category: Category = Category.GENERAL
    doc: str = ""


REGISTRY: Dict[str, ErrorMessage] = {}

class _ErrorCatalog:
    def __init__(self, backing: Dict[str, ErrorMessage]) -> None:
        self._registry = backing

    def __getattr__(self, name: str) -> ErrorMessage:
        try:
            return self._registry[name]
        except KeyError as e:
            raise AttributeError(name) from e

    def __getitem__(self, code: str) -> ErrorMessage:
        return self._registry[code]


ERR = _ErrorCatalog(REGISTRY)

def emit(r: Reporter, em: ErrorMessage, span: Optional[Span], **kwargs) -> None:
    text = _fmt(em.code, **kwargs)
    if em.severity == Severity.ERROR:
        r.error(em.code, text, span)
    else:
        r.warn(em.code, text, span)

def format_message(code: str, **kwargs) -> str:
    """Render the catalog text for *code* with its parameters filled in."""
    return _fmt(code, **kwargs)


class CodedError(Exception):
    """Base exception carrying a catalog code and its format parameters.

    ``notes`` holds extra lines (command lines, tool output) that are
    reported after the main message.
    """

    def __init__(self, code: str, notes: Optional[list[str]] = None, span: Optional[Span] = None, **kwargs):
        self.code = code
        self.kwargs = kwargs
        self.notes = list(notes or [])
        self.span = span
        self.message = _fmt(code, **kwargs)
        super().__init__(f"{code}: {self.message}")

    def report(self, r: Reporter) -> None:
        """Emit this error and its notes into a reporter."""
        emit(r, _get(self.code), self.span, **self.kwargs)
        for note in self.notes:
            r.note(note)


#
# --- Helpers
#

def _add(msg: ErrorMessage) -> None:
    if msg.code in REGISTRY:
        raise ValueError(f"duplicate error code {REGISTRY[msg.code]} in {msg}")
    REGISTRY[msg.code] = msg

def _get(code: str) -> ErrorMessage:
    try:
        return REGISTRY[code]
    except KeyError:
        raise KeyError(f"unknown error code: {code}")

def _fmt(code: str, **kwargs) -> str:
    msg = _get(code)
    try:
        return msg.text.format(**kwargs)
    except KeyError as key_error:
        missing = key_error.args[0]
        raise KeyError(f"missing text key '{missing}' for {code} "
                       f"(needed by: {msg.text!r})") from None

#
# --- Registry population
#

# Link metadata (CE40xx)
_add(ErrorMessage("CW4001", Severity.WARNING,
    "missing crate link meta `{name}`, using `{default}` as default",
    Category.METADATA, "The unit declares no string-valued name or vers inside #[link(...)]; a default was inferred."))

_add(ErrorMessage("CE4002", Severity.ERROR,
    "duplicate link meta item `{name}`",
    Category.METADATA, "Each item inside #[link(...)] may be declared only once per unit."))

_add(ErrorMessage("CE4007", Severity.ERROR,
    "output file name `{path}` doesn't appear to have a stem",
    Category.METADATA, "The crate name could not be inferred from the output path."))

_add(ErrorMessage("CE4008", Severity.ERROR,
    "malformed attribute declaration: {reason}",
    Category.METADATA, "Attribute files hold lines of the form #[link(name = \"foo\", vers = \"0.1\")]."))

# External tools (CE40xx)
_add(ErrorMessage("CE4003", Severity.ERROR,
    "linking with `{tool}` failed with code {status}",
    Category.TOOL, "The system linker exited with a non-zero status. The object file is kept for inspection."))

_add(ErrorMessage("CE4004", Severity.ERROR,
    "could not execute `{tool}`: {reason}",
    Category.TOOL, "The linker program was not found or could not be started."))

_add(ErrorMessage("CW4005", Severity.WARNING,
    "failed to delete object file `{path}`",
    Category.LINK, "The intermediate object file could not be removed after linking."))

_add(ErrorMessage("CW4006", Severity.WARNING,
    "`{tool}` failed on `{path}`: {reason}",
    Category.TOOL, "Debug symbol extraction is best-effort; the linked artifact is still usable."))

# Dependencies and targets
_add(ErrorMessage("CE4009", Severity.ERROR,
    "dependency not found: '{path}' (searched: {paths})",
    Category.LINK, "A dependency passed with --dep does not exist."))

_add(ErrorMessage("CE4010", Severity.ERROR,
    "unsupported target os '{os}' (from triple '{triple}')",
    Category.TARGET, "Supported operating systems: win32, macos, linux, android, freebsd."))

_add(ErrorMessage("CE4011", Severity.ERROR,
    "cannot read `{path}`: {reason}",
    Category.GENERAL, "An input file (object, attribute file) could not be read."))
