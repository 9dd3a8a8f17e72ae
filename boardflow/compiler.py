from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from loguru import logger

from .ast import (
    CURRENT_WINDOW,
    INFIX_OPERATORS,
    DataAst,
    FileAst,
    FlowAst,
    FunctionAst,
    GraphicAst,
    InfixAst,
    InstructionAst,
    InstructionInnerAst,
    LoopAst,
    NumberAst,
    PropertyAst,
    StringAst,
    VariableAst,
    WindowAst,
)
from .budget import StepBudget
from .errors import StepLimitExceeded
from .graph_engine import Diagram
from .markers import Diagnostics, Severity
from .parser import try_parse_number, try_parse_string
from .schemas import ELLIPSE, ENG_DATABASE, NO_CAP, SQUARE, TRIANGLE_UP, Element

@dataclass
class Connections:
    incoming: List[Element] = field(default_factory=list)
    outgoing: List[Element] = field(default_factory=list)
    next: List[Element] = field(default_factory=list)

class Compiler:
    """Compiles the windows of a board into syntax trees.

    Compilation is total and best-effort: malformed pieces of the board are
    reported as warnings and left out. The only fatal outcome is running out
    of step budget, which is how cycles in the board are caught.
    """

    def __init__(self, diagram: Diagram, diagnostics: Diagnostics, budget: StepBudget):
        self.diagram = diagram
        self.diagnostics = diagnostics
        self.budget = budget

    def warn(self, message: str, element: Element) -> None:
        self.diagnostics.warn(message, element)

    # ---------- Edges ----------
    def get_connections(self, element: Element) -> Connections:
        self.budget.step(element)
        conns = Connections()

        for connector in self.diagram.attached_connectors(element.id):
            if connector.start == connector.end:
                continue

            if connector.start == element.id:
                this_cap, other_id, other_cap = connector.start_cap, connector.end, connector.end_cap
            else:
                this_cap, other_id, other_cap = connector.end_cap, connector.start, connector.start_cap
            other = self.diagram.element(other_id)

            if other_cap != NO_CAP:
                conns.outgoing.append(other)
            elif this_cap != NO_CAP:
                conns.incoming.append(other)
            elif connector.end != element.id:
                conns.next.append(other)

        # Reading order: top to bottom.
        conns.next.sort(key=lambda el: el.y)
        return conns

    # ---------- Data ----------
    def compile_data(self, element: Element) -> Optional[DataAst]:
        if element.is_shape:
            text = element.label
            if text:
                if element.shape == SQUARE:
                    return self._compile_variable(element, text)
                if element.shape == ELLIPSE:
                    return self._compile_property(element, text)
                if element.shape == ENG_DATABASE:
                    return FileAst(data=text, at=element)
            return GraphicAst(at=element)

        if element.is_text:
            return self.compile_flow(element)

        self.warn("could not interpret this data, it will be ignored.", element)
        return None

    def _compile_variable(self, element: Element, text: str) -> VariableAst:
        inputs: List[DataAst] = []
        for other in self.get_connections(element).incoming:
            if not (other.is_shape and other.shape == ELLIPSE):
                continue
            data = self.compile_data(other)
            if data is not None:
                inputs.append(data)

        initializer = next((d for d in inputs if isinstance(d, PropertyAst)), None)
        return VariableAst(name=text, property_initializer=initializer, at=element)

    def _compile_property(self, element: Element, text: str) -> PropertyAst:
        parents: List[DataAst] = []
        for other in self.get_connections(element).incoming:
            if other.is_shape:
                data = self.compile_data(other)
                if data is not None:
                    parents.append(data)

        if len(parents) > 1:
            self.warn(f"property '{text}' has more than one valid parents, only one will be used.", element)

        return PropertyAst(name=text, parent=parents[0] if parents else CURRENT_WINDOW, at=element)

    def get_inputs_and_outputs(self, element: Element):
        conns = self.get_connections(element)
        inputs: List[DataAst] = []
        outputs: List[DataAst] = []

        for other in conns.incoming:
            data = self.compile_data(other)
            if data is not None:
                inputs.append(data)

        for other in conns.outgoing:
            data = self.compile_data(other)
            if data is not None:
                outputs.append(data)

        return inputs, outputs

    # ---------- Instructions ----------
    def _compile_infix_side(self, text: str, at: Element) -> Optional[Union[NumberAst, StringAst, PropertyAst]]:
        text = text.strip()

        number = try_parse_number(text)
        if number is not None:
            return NumberAst(value=number, at=at)

        string = try_parse_string(text)
        if string is not None:
            return StringAst(value=string, at=at)

        if text:
            return PropertyAst(name=text, parent=CURRENT_WINDOW, at=at)
        return None

    def _compile_inner(self, element: Element) -> InstructionInnerAst:
        text = element.label

        if text == "loop":
            return LoopAst(body=self.compile_instructions(element), at=element)

        number = try_parse_number(text)
        if number is not None:
            return NumberAst(value=number, at=element)

        string = try_parse_string(text)
        if string is not None:
            return StringAst(value=string, at=element)

        for operator in INFIX_OPERATORS:
            parts = text.split(operator)
            if len(parts) < 2:
                continue
            if len(parts) > 2:
                self.warn("too many operands passed to infix operator.", element)
            return InfixAst(
                operator=operator,
                left=self._compile_infix_side(parts[0], element),
                right=self._compile_infix_side(parts[1], element),
                at=element,
            )

        return FunctionAst(text=text, at=element)

    def compile_instruction(self, element: Element) -> InstructionAst:
        inputs, outputs = self.get_inputs_and_outputs(element)
        inner = self._compile_inner(element)

        if isinstance(inner, LoopAst):
            return InstructionAst(inner, inputs, outputs, match_arms=None, next=None, at=element)

        if element.font_style is None:
            self.warn("mixed font detected, cannot detect italics.", element)
        elif "Italic" in element.font_style:
            return InstructionAst(inner, inputs, outputs, match_arms=self._compile_match_arms(element), next=None,
                                  at=element)

        return InstructionAst(inner, inputs, outputs, match_arms=None, next=self.compile_instructions(element),
                              at=element)

    def _compile_match_arms(self, element: Element) -> Dict[str, InstructionAst]:
        arms: Dict[str, InstructionAst] = {}
        for destination in self.get_connections(element).next:
            if not destination.is_text:
                self.warn("cannot match against non-text.", destination)
                continue

            label = destination.label
            if label in arms:
                self.warn("duplicate match arm, one will be ignored.", destination)

            body = self.compile_instructions(destination)
            if body is not None:
                arms[label] = body
        return arms

    def compile_instructions(self, element: Element) -> Optional[InstructionAst]:
        """Compile the sequential successors of `element` into one linked chain."""
        candidates: List[Element] = []
        for node in self.get_connections(element).next:
            if node.is_text:
                candidates.append(node)
            else:
                self.warn(f"node type '{node.kind}' cannot be a valid instruction.", node)
        if not candidates:
            return None

        first = self.compile_instruction(candidates[0])
        last = first.tail(self.budget)
        for subsequent in candidates[1:]:
            if last.next is not None:
                self.warn("tried to overwrite an existing instruction, this one will be ignored.", subsequent)
                continue
            last.next = self.compile_instruction(subsequent)
            last = last.next.tail(self.budget)

        return first

    def compile_flow(self, element: Element) -> FlowAst:
        return FlowAst(name=element.text, first=self.compile_instructions(element), at=element)

    # ---------- Windows ----------
    def compile_window(self, section: Element) -> WindowAst:
        try:
            return self._compile_window(section)
        except RecursionError:
            # The interpreter stack ran out before the step budget did.
            raise StepLimitExceeded(section) from None

    def _compile_window(self, section: Element) -> WindowAst:
        conns = self.get_connections(section)
        setup: Optional[FlowAst] = None
        loop: Optional[FlowAst] = None

        for node in conns.outgoing:
            if not node.is_text:
                self.warn(f"unknown node type '{node.kind}' as child of window.", node)
                continue

            if node.text == "setup":
                if setup is not None:
                    self.warn("duplicate setup function! ignoring.", node)
                    continue
                setup = self.compile_flow(node)
            elif node.text == "loop":
                if loop is not None:
                    self.warn("duplicate loop function! ignoring.", node)
                    continue
                loop = self.compile_flow(node)
            else:
                self.warn(f"unknown flow '{node.text}' on window.", node)

        play_buttons = [el for el in conns.incoming if el.is_shape and el.shape == TRIANGLE_UP]
        stop_buttons = [el for el in conns.incoming if el.is_shape and el.shape == SQUARE]

        return WindowAst(play_buttons=play_buttons, stop_buttons=stop_buttons, setup=setup, loop=loop, at=section)

    def compile_page(self) -> List[WindowAst]:
        self.diagnostics.clear(Severity.WARNING)
        windows = [self.compile_window(section) for section in self.diagram.sections()]
        logger.debug("compiled {} window(s) in {} steps", len(windows), self.budget.used)
        return windows


def compile_page(diagram: Diagram, diagnostics: Diagnostics, budget: Optional[StepBudget] = None) -> List[WindowAst]:
    return Compiler(diagram, diagnostics, budget or StepBudget()).compile_page()
