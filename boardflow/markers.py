"""On-board markers for warnings and errors.

The compiler and the evaluator never print problems directly; they report
them to a `Diagnostics` sink, which logs through loguru and asks the host's
annotation surface to pin a marker next to the offending element.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Protocol

from loguru import logger

from .schemas import Element


class Severity(str, Enum):
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Marker:
    severity: Severity
    message: str
    element: Element


class AnnotationSurface(Protocol):
    def show(self, severity: Severity, message: str, element: Element) -> None:
        """Pin a marker near `element`, replacing any marker already on it."""

    def clear(self, severity: Severity) -> None:
        """Remove every marker of the given severity."""


class MemoryAnnotations:
    """Annotation surface that keeps markers in memory, one per element."""

    def __init__(self):
        self.markers: Dict[str, Marker] = {}

    def show(self, severity: Severity, message: str, element: Element) -> None:
        self.markers[element.id] = Marker(severity, message, element)

    def clear(self, severity: Severity) -> None:
        self.markers = {k: m for k, m in self.markers.items() if m.severity != severity}

    def of(self, severity: Severity) -> List[Marker]:
        return [m for m in self.markers.values() if m.severity == severity]

    @property
    def warnings(self) -> List[Marker]:
        return self.of(Severity.WARNING)

    @property
    def errors(self) -> List[Marker]:
        return self.of(Severity.ERROR)


def describe(element: Element) -> str:
    return f"{element.kind} '{element.name or element.text.strip() or element.id}'"


class Diagnostics:
    """Routes recoverable warnings and fatal errors to the log and the board."""

    def __init__(self, surface: AnnotationSurface):
        self.surface = surface

    def warn(self, message: str, element: Element) -> None:
        logger.warning("{} @ {}", message, describe(element))
        self.surface.show(Severity.WARNING, message, element)

    def error(self, message: str, element: Element) -> None:
        logger.error("{} @ {}", message, describe(element))
        self.surface.show(Severity.ERROR, message, element)

    def clear(self, severity: Severity) -> None:
        self.surface.clear(severity)
