"""
Diagnostics produced by resolution and validation.

Diagnostics are data, not exceptions: they are accumulated while a pass
runs and returned to the caller, who decides whether errors fail a build.
Warnings never do.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


class DiagnosticKind(Enum):
    MISSING_TOKEN = "missing-token"
    MISSING_COMPONENT = "missing-component"
    MISSING_PROP = "missing-prop"
    CIRCULAR_REF = "circular-ref"
    INVALID_VARIANT = "invalid-variant"
    MISSING_REQUIRED = "missing-required"
    TYPE_MISMATCH = "type-mismatch"
    INVALID_ENUM = "invalid-enum"
    DEPRECATED = "deprecated"
    UNUSED_PROP = "unused-prop"
    UNRESOLVED_TOKEN = "unresolved-token"


@dataclass(frozen=True)
class Diagnostic:
    """
    One finding.

    Properties:
        kind: What went wrong
        severity: ERROR blocks a build, WARNING does not
        path: Location, e.g. "Button/Label/styles/color"
        reference: The offending name (token path, prop, component, ...)
        message: Human-readable description
    """

    kind: DiagnosticKind
    severity: Severity
    path: str
    message: str
    reference: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR


@dataclass
class ValidationResult:
    """Outcome of a validation run. ``valid`` is False iff there are errors."""

    errors: List[Diagnostic] = field(default_factory=list)
    warnings: List[Diagnostic] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def add(self, diagnostic: Diagnostic) -> None:
        if diagnostic.is_error:
            self.errors.append(diagnostic)
        else:
            self.warnings.append(diagnostic)

    def extend(self, diagnostics: List[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    def errors_of(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.errors if d.kind is kind]

    def warnings_of(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.warnings if d.kind is kind]


def error(kind: DiagnosticKind, path: str, message: str, reference: Optional[str] = None) -> Diagnostic:
    return Diagnostic(kind=kind, severity=Severity.ERROR, path=path, message=message, reference=reference)


def warning(kind: DiagnosticKind, path: str, message: str, reference: Optional[str] = None) -> Diagnostic:
    return Diagnostic(kind=kind, severity=Severity.WARNING, path=path, message=message, reference=reference)
