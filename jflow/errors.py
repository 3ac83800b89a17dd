"""
jflow.errors
============

Exception hierarchy shared by every jflow module.

Only capability violations and malformed input abort an analysis.
Arithmetic hazards (division by a known zero) and unresolvable dispatch
degrade precision instead and never reach this module.

Hierarchy
---------
    JFlowError
    ├── AnalysisError
    │   ├── UnsupportedDirectionError
    │   └── LatticeError
    ├── IRError
    │   └── IRParseError
    └── ConfigError
"""

from __future__ import annotations

from typing import Optional


class JFlowError(Exception):
    """Base exception for all jflow errors."""
    pass


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------

class AnalysisError(JFlowError):
    """Raised when an analysis cannot be carried out."""
    pass


class UnsupportedDirectionError(AnalysisError):
    """Raised when a solver is handed an analysis running the wrong way."""

    def __init__(self, solver: str, analysis: str, forward: bool):
        self.solver = solver
        self.analysis = analysis
        self.forward = forward
        direction = "forward" if forward else "backward"
        super().__init__(
            f"{solver} does not support {direction} analysis {analysis}"
        )


class LatticeError(AnalysisError):
    """Raised on misuse of a lattice value (an implementation defect)."""
    pass


# ---------------------------------------------------------------------------
# IR
# ---------------------------------------------------------------------------

class IRError(JFlowError):
    """Raised when a program is malformed (unknown label, class, method...)."""
    pass


class IRParseError(IRError):
    """Raised when textual IR does not match the grammar."""

    def __init__(
        self,
        message: str,
        text: str = "",
        position: int = -1,
        source: Optional[str] = None,
    ):
        self.text = text
        self.position = position
        self.source = source
        self.line = -1
        self.column = -1
        if position >= 0 and text:
            self.line = text.count("\n", 0, position) + 1
            self.column = position - (text.rfind("\n", 0, position) + 1) + 1
            where = f"{source or '<string>'}:{self.line}:{self.column}"
            lines = text.splitlines()
            source_line = lines[self.line - 1] if self.line <= len(lines) else ""
            pointer = " " * (self.column - 1) + "^"
            message = f"{where}: {message}\n  {source_line}\n  {pointer}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

class ConfigError(JFlowError):
    """Raised for unknown analyses, bad options or malformed plan files."""
    pass
