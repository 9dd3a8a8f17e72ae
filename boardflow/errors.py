from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schemas import Element


class BoardFlowError(Exception):
    pass

class ParseError(BoardFlowError):
    """Raised when an instruction label does not match the literal grammar."""
    pass

class DiagramError(BoardFlowError):
    """Raised when a diagram document fails validation."""
    pass

class EvalError(BoardFlowError):
    """Fatal evaluation error. Aborts the current tick of the owning window."""

    def __init__(self, message: str, element: "Element"):
        super().__init__(f"{message} @ {element.kind} '{element.name}'")
        self.original_message = message
        self.element = element

class StepLimitExceeded(EvalError):
    """Raised when a compile pass or a tick runs out of step budget."""

    def __init__(self, element: "Element"):
        super().__init__("Max step budget exceeded.", element)
