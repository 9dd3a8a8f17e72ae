# Syntax tree types for compiled boards.
# Every node keeps the element it was compiled from (`at`) for error attribution.
from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from .schemas import Element

CURRENT_WINDOW = "CURRENT_WINDOW"

INFIX_OPERATORS = (">=", "<=", ">", "<", "+", "*", "/", "%", "-")

@dataclass
class GraphicAst:
    at: Element

@dataclass
class FileAst:
    data: str
    at: Element

@dataclass
class NumberAst:
    value: float
    at: Element

@dataclass
class StringAst:
    value: str
    at: Element

@dataclass
class VariableAst:
    name: str
    property_initializer: Optional[PropertyAst]
    at: Element

@dataclass
class PropertyAst:
    name: str
    parent: Union[DataAst, str]  # a data expression or CURRENT_WINDOW
    at: Element

    @property
    def on_current_window(self) -> bool:
        return isinstance(self.parent, str) and self.parent == CURRENT_WINDOW

@dataclass
class FunctionAst:
    text: str
    at: Element

@dataclass
class InfixAst:
    operator: str
    left: Optional[Union[NumberAst, StringAst, PropertyAst]]
    right: Optional[Union[NumberAst, StringAst, PropertyAst]]
    at: Element

@dataclass
class LoopAst:
    body: Optional[InstructionAst]
    at: Element

InstructionInnerAst = Union[FunctionAst, NumberAst, StringAst, InfixAst, LoopAst]

@dataclass
class InstructionAst:
    instruction: InstructionInnerAst
    inputs: List[DataAst]
    outputs: List[DataAst]
    match_arms: Optional[Dict[str, InstructionAst]]
    next: Optional[InstructionAst]
    at: Element

    def tail(self, budget) -> InstructionAst:
        """Last instruction reachable through `next`."""
        node = self
        while node.next is not None:
            budget.step(node.at)
            node = node.next
        return node

@dataclass
class FlowAst:
    name: str
    first: Optional[InstructionAst]
    at: Element

@dataclass
class WindowAst:
    play_buttons: List[Element]
    stop_buttons: List[Element]
    setup: Optional[FlowAst]
    loop: Optional[FlowAst]
    at: Element

    @property
    def name(self) -> str:
        return self.at.name or self.at.id

DataAst = Union[FlowAst, GraphicAst, FileAst, VariableAst, PropertyAst, NumberAst, StringAst]
