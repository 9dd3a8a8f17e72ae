from __future__ import annotations
from typing import Dict, List, Optional

from .ast import (
    DataAst,
    FileAst,
    FlowAst,
    FunctionAst,
    GraphicAst,
    InfixAst,
    InstructionAst,
    LoopAst,
    NumberAst,
    PropertyAst,
    StringAst,
    VariableAst,
)
from .binder import Actual, Param, pick_args
from .budget import StepBudget
from .builtins import BUILTINS, INFIX_OPERATOR_IMPLS, Call
from .config import RuntimeConfig
from .errors import EvalError
from .inputs import InputState
from .markers import Diagnostics
from .render import RenderSurface, WindowHandle, read_field, write_field
from .types import (
    ANY_TYPE,
    ArrayObj,
    EnumObj,
    FlowObj,
    GraphicObj,
    NumberObj,
    Obj,
    StringObj,
    array_type,
)

Store = Dict[str, Obj]

_LOOP_PARAMS = (Param(array_type(ANY_TYPE)),)

_KIND_NAMES = {
    FlowAst: "FLOW",
    GraphicAst: "GRAPHIC",
    FileAst: "FILE",
    NumberAst: "NUMBER",
    StringAst: "STRING",
}


class Evaluator:
    """Walks compiled instruction chains for one running window.

    Variables live in `store`, keyed by the id of the element that names
    them; the store is shared with the owning runtime and outlives ticks.
    Setting `done` stops any chain in progress before its next instruction.
    """

    def __init__(self, store: Store, window: WindowHandle, surface: RenderSurface, inputs: InputState,
                 diagnostics: Diagnostics, config: Optional[RuntimeConfig] = None):
        self.store = store
        self.window = window
        self.surface = surface
        self.inputs = inputs
        self.diagnostics = diagnostics
        self.config = config or RuntimeConfig()
        self.done = False

    # ---------- Data ----------
    def get_data_value(self, data: DataAst) -> Obj:
        if isinstance(data, GraphicAst):
            return GraphicObj(graphic=data.at, at=data.at)
        if isinstance(data, VariableAst):
            value = self.store.get(data.at.id)
            if value is None and data.property_initializer is not None:
                value = self.get_data_value(data.property_initializer)
            if value is None:
                raise EvalError(f"variable '{data.name}' is not set.", data.at)
            return value
        if isinstance(data, PropertyAst):
            return read_field(self._property_target(data), data.name, data.at)
        if isinstance(data, FlowAst):
            return FlowObj(flow=data, at=data.at)
        if isinstance(data, NumberAst):
            return NumberObj(value=data.value, at=data.at)
        if isinstance(data, StringAst):
            return StringObj(value=data.value, at=data.at)
        if isinstance(data, FileAst):
            return StringObj(value=data.data, at=data.at)
        raise EvalError(f"cannot evaluate {type(data).__name__}.", data.at)

    def _property_target(self, data: PropertyAst):
        if data.on_current_window:
            return self.window
        if isinstance(data.parent, VariableAst) and data.parent.at.id in self.store:
            return self.store[data.parent.at.id]
        raise EvalError("failed to read variable", data.at)

    # ---------- Instructions ----------
    async def get_instruction_value(self, instruction: InstructionAst, budget: StepBudget) -> Optional[Obj]:
        actuals: List[Actual] = [
            Actual(obj=self.get_data_value(data), name=data.name if isinstance(data, VariableAst) else None)
            for data in instruction.inputs
        ]
        inner = instruction.instruction

        if isinstance(inner, LoopAst):
            if inner.body is None:
                self.diagnostics.warn("loop has no body.", instruction.at)
                return None

            array: ArrayObj = pick_args(_LOOP_PARAMS, actuals, instruction.at, self.diagnostics)[0]
            for item in array.items:
                self.set_outputs(instruction.outputs, item)
                await self.run_instructions(inner.body, budget)
            return None

        if isinstance(inner, FunctionAst):
            fn = BUILTINS.get(inner.text)
            if fn is None:
                raise EvalError("unknown builtin function call.", instruction.at)
            args = pick_args(fn.params, actuals, instruction.at, self.diagnostics)
            return await fn.impl(Call(self, instruction.at, budget), *args)

        if isinstance(inner, InfixAst):
            op = INFIX_OPERATOR_IMPLS[inner.operator]
            if inner.left is not None:
                actuals.append(Actual(obj=self.get_data_value(inner.left), name="left"))
            if inner.right is not None:
                actuals.append(Actual(obj=self.get_data_value(inner.right), name="right"))
            left, right = pick_args((op.left, op.right), actuals, instruction.at, self.diagnostics)
            return op.impl(left, right, instruction.at)

        if isinstance(inner, NumberAst):
            return NumberObj(value=inner.value, at=instruction.at)
        if isinstance(inner, StringAst):
            return StringObj(value=inner.value, at=instruction.at)

        raise EvalError(f"cannot evaluate {type(inner).__name__}.", instruction.at)

    def set_outputs(self, outputs: List[DataAst], value: Obj) -> None:
        for output in outputs:
            if isinstance(output, VariableAst):
                self.store[output.at.id] = value
            elif isinstance(output, PropertyAst):
                parent = output.parent
                if not (isinstance(parent, VariableAst) and parent.at.id in self.store):
                    raise EvalError("failed to set variable", output.at)
                write_field(self.store[parent.at.id], output.name, value, output.at)
            else:
                kind = _KIND_NAMES.get(type(output), type(output).__name__)
                raise EvalError(f"this is a '{kind}' node and i don't know how to assign to it.", output.at)

    async def run_instructions(self, first: Optional[InstructionAst], budget: StepBudget) -> None:
        # Last in, first out: a match arm pushed after `next` runs to completion
        # before execution resumes at `next`.
        queue: List[InstructionAst] = [first] if first is not None else []

        while queue:
            instruction = queue.pop()
            if self.done:
                return
            budget.step(instruction.at)
            if instruction.next is not None:
                queue.append(instruction.next)

            value = await self.get_instruction_value(instruction, budget)

            if isinstance(value, EnumObj) and instruction.match_arms:
                for option, arm in instruction.match_arms.items():
                    if option in value.selected:
                        queue.append(arm)
                    elif option not in value.type.options:
                        valid = ", ".join(f"'{v}'" for v in sorted(value.type.options))
                        self.diagnostics.warn(f"unknown enum value. valid: {valid}", instruction.at)

            if value is not None:
                self.set_outputs(instruction.outputs, value)
            elif instruction.outputs and not isinstance(instruction.instruction, LoopAst):
                self.diagnostics.warn(
                    "not outputting anything because this function does not return anything.",
                    instruction.outputs[0].at,
                )

    async def run_flow(self, flow: Optional[FlowAst], budget: StepBudget) -> None:
        if flow is not None:
            await self.run_instructions(flow.first, budget)
