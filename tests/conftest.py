"""
Test configuration and fixtures for the BoardFlow test suite.
"""
import sys
import pytest
from pathlib import Path
from typing import Optional

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from boardflow.budget import StepBudget
from boardflow.compiler import Compiler
from boardflow.evaluator import Evaluator
from boardflow.graph_engine import Diagram
from boardflow.inputs import InputState
from boardflow.markers import Diagnostics, MemoryAnnotations
from boardflow.render import MemorySurface, WindowHandle
from boardflow.schemas import (
    ELLIPSE,
    ENG_DATABASE,
    SECTION,
    SHAPE_WITH_TEXT,
    SQUARE,
    TEXT,
    TRIANGLE_UP,
    Element,
)

ARROW = "ARROW_LINES"


class Board:
    """Small builder for drawing test boards element by element."""

    def __init__(self):
        self.diagram = Diagram()
        self._n = 0

    def _add(self, prefix: str, **fields) -> Element:
        self._n += 1
        return self.diagram.add_element(Element(id=f"{prefix}-{self._n}", **fields))

    def window(self, name: str = "Game", width: float = 400, height: float = 300) -> Element:
        return self._add("window", kind=SECTION, name=name, width=width, height=height)

    def text(self, text: str, y: float = 0, italic: bool = False, font_style: Optional[str] = "Regular") -> Element:
        if italic:
            font_style = "Italic"
        return self._add("text", kind=TEXT, name=text, text=text, y=y, font_style=font_style)

    def shape(self, shape: str, text: str = "", y: float = 0, width: float = 100, height: float = 100) -> Element:
        return self._add("shape", kind=SHAPE_WITH_TEXT, shape=shape, name=text or shape.lower(), text=text, y=y,
                         width=width, height=height)

    def variable(self, name: str) -> Element:
        return self.shape(SQUARE, name)

    def prop(self, name: str) -> Element:
        return self.shape(ELLIPSE, name)

    def file(self, contents: str) -> Element:
        return self.shape(ENG_DATABASE, contents)

    def play_button(self) -> Element:
        return self.shape(TRIANGLE_UP)

    def then(self, a: Element, b: Element):
        """Plain connector: `b` follows `a`."""
        return self.diagram.connect(a, b)

    def arrow(self, a: Element, b: Element):
        """Connector with an arrow head at `b`: data flows from `a` into `b`."""
        return self.diagram.connect(a, b, end_cap=ARROW)

    def chain(self, head: Element, *labels: str):
        """Draw a top-to-bottom chain of text instructions after `head`."""
        elements = []
        previous = head
        for i, label in enumerate(labels):
            el = self.text(label, y=head.y + 10 * (i + 1))
            self.then(previous, el)
            elements.append(el)
            previous = el
        return elements


@pytest.fixture
def board() -> Board:
    """Return an empty board."""
    return Board()


@pytest.fixture
def annotations() -> MemoryAnnotations:
    return MemoryAnnotations()


@pytest.fixture
def diagnostics(annotations) -> Diagnostics:
    return Diagnostics(annotations)


@pytest.fixture
def compiler(board, diagnostics):
    """Return a factory compiling the fixture board with a given step limit."""
    def make(limit: int = 10_000) -> Compiler:
        return Compiler(board.diagram, diagnostics, StepBudget(limit))
    return make


@pytest.fixture
def evaluator(board, diagnostics):
    """Return a factory for an evaluator drawing into a fresh surface."""
    def make(window: Optional[Element] = None) -> Evaluator:
        window = window or Element(id="test-window", kind=SECTION, name="Test", width=400, height=300)
        surface = MemorySurface(window)
        return Evaluator({}, WindowHandle(surface), surface, InputState(), diagnostics)
    return make
