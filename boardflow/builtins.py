"""Builtin functions and infix operators available to board programs.

Builtins are looked up by the exact label of a text instruction. Each one
declares its parameters (type, optional name) for the argument binder and an
async implementation receiving the bound values in parameter order.
"""

from __future__ import annotations
import asyncio
import math
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Tuple

from loguru import logger

from .binder import Param
from .budget import StepBudget
from .errors import EvalError
from .inputs import KEYS
from .render import SpriteHandle, TextHandle
from .schemas import Element
from .types import (
    ANY_TYPE,
    FLOW_TYPE,
    GRAPHIC_TYPE,
    NUMBER_TYPE,
    SPRITE_TYPE,
    STRING_TYPE,
    ArrayObj,
    EnumObj,
    FlowObj,
    GraphicObj,
    NumberObj,
    Obj,
    SpriteObj,
    StringObj,
    TextObj,
    array_type,
    boolean,
    enum_type,
    format_number,
)

if TYPE_CHECKING:
    from .evaluator import Evaluator


@dataclass
class Call:
    """Everything a builtin may need besides its arguments."""
    evaluator: Evaluator
    at: Element
    budget: StepBudget


@dataclass(frozen=True)
class BuiltinFn:
    params: Tuple[Param, ...]
    impl: Callable[..., Awaitable[Optional[Obj]]]


# ─── Graphics ──────────────────────────────────────────────────

async def add_sprite(call: Call, graphic: GraphicObj) -> SpriteObj:
    surface = call.evaluator.surface
    object_id = await surface.add_sprite(graphic.graphic)
    return SpriteObj(handle=SpriteHandle(surface, object_id), at=call.at)


async def add_text(call: Call) -> TextObj:
    surface = call.evaluator.surface
    object_id = await surface.add_text(call.evaluator.config.text_font_size)
    return TextObj(handle=TextHandle(surface, object_id), at=call.at)


async def add_line(call: Call, start_x: NumberObj, start_y: NumberObj, end_x: NumberObj,
                   end_y: NumberObj) -> GraphicObj:
    surface = call.evaluator.surface
    object_id = await surface.add_line(start_x.value, start_y.value, end_x.value, end_y.value)
    b = surface.object_bounds(object_id)
    line = Element(id=object_id, kind="LINE", name="line", x=b.x, y=b.y, width=b.width, height=b.height)
    return GraphicObj(graphic=line, at=call.at)


async def colliding(call: Call, a: SpriteObj, b: SpriteObj) -> EnumObj:
    try:
        a.handle.refresh()
        b.handle.refresh()
    except Exception as e:
        raise EvalError("failed to read variable", call.at) from e
    ha, hb = a.handle, b.handle
    hit = (
        ha.x < hb.x + hb.width
        and ha.x + ha.width > hb.x
        and ha.y < hb.y + hb.height
        and ha.y + ha.height > hb.y
    )
    return boolean(hit, call.at)


# ─── Control ───────────────────────────────────────────────────

async def call_flow(call: Call, flow: FlowObj) -> None:
    await call.evaluator.run_instructions(flow.flow.first, call.budget)
    return None


async def yield_(call: Call) -> None:
    await asyncio.sleep(call.evaluator.config.yield_seconds)
    return None


async def inputs(call: Call) -> EnumObj:
    return EnumObj(type=enum_type(KEYS), selected=call.evaluator.inputs.pressed, at=call.at)


async def debug_log(call: Call, value: Obj) -> None:
    logger.info("debug log: {}", value)
    return None


# ─── Arrays ────────────────────────────────────────────────────

async def range_(call: Call, size: NumberObj) -> ArrayObj:
    n = size.value
    if n < 0 or not float(n).is_integer():
        raise EvalError(f"invalid array length: {format_number(n)}.", call.at)
    items: List[Obj] = [NumberObj(value=float(i), at=call.at) for i in range(int(n))]
    return ArrayObj(type=array_type(NUMBER_TYPE), items=items, at=call.at)


async def length(call: Call, array: ArrayObj) -> NumberObj:
    return NumberObj(value=float(len(array.items)), at=call.at)


async def index(call: Call, array: ArrayObj, position: NumberObj) -> Obj:
    i = position.value
    if i < 0 or not float(i).is_integer() or int(i) >= len(array.items):
        raise EvalError(f"array index out of bounds: {format_number(i)} >= length {len(array.items)}.", call.at)
    return array.items[int(i)]


async def to_string(call: Call, number: NumberObj) -> StringObj:
    return StringObj(value=format_number(number.value), at=call.at)


# ─── Wavefront .obj files ──────────────────────────────────────

_FLOAT_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def _parse_float_prefix(text: str) -> float:
    # Face entries look like "3/1/2": only the leading vertex index counts.
    match = _FLOAT_PREFIX.match(text)
    return float(match.group(0)) if match else math.nan


def _obj_records(source: str, tag: str, what: str, at: Element, offset: float) -> List[ArrayObj]:
    records: List[ArrayObj] = []
    for line in source.split("\n"):
        if not re.match(rf"{tag}\s", line):
            continue
        values: List[Obj] = []
        for part in line[1:].split():
            value = _parse_float_prefix(part)
            if math.isnan(value):
                raise EvalError(f"could not parse obj: {what} '{part}' is not a number.", at)
            values.append(NumberObj(value=value - offset, at=at))
        records.append(ArrayObj(type=array_type(NUMBER_TYPE), items=values, at=at))
    return records


async def parse_obj_faces(call: Call, file: StringObj) -> ArrayObj:
    faces = _obj_records(file.value, "f", "face", call.at, offset=1)
    logger.info("loaded {} faces", len(faces))
    return ArrayObj(type=array_type(array_type(NUMBER_TYPE)), items=faces, at=call.at)


async def parse_obj_vertices(call: Call, file: StringObj) -> ArrayObj:
    vertices = _obj_records(file.value, "v", "vertex", call.at, offset=0)
    logger.info("loaded {} vertices", len(vertices))
    return ArrayObj(type=array_type(array_type(NUMBER_TYPE)), items=vertices, at=call.at)


BUILTINS: Dict[str, BuiltinFn] = {
    "add sprite": BuiltinFn((Param(GRAPHIC_TYPE),), add_sprite),
    "add text": BuiltinFn((), add_text),
    "add line": BuiltinFn((
        Param(NUMBER_TYPE, "start x"),
        Param(NUMBER_TYPE, "start y"),
        Param(NUMBER_TYPE, "end x"),
        Param(NUMBER_TYPE, "end y"),
    ), add_line),
    "call": BuiltinFn((Param(FLOW_TYPE),), call_flow),
    "range": BuiltinFn((Param(NUMBER_TYPE),), range_),
    "inputs": BuiltinFn((), inputs),
    "colliding": BuiltinFn((Param(SPRITE_TYPE), Param(SPRITE_TYPE)), colliding),
    "to string": BuiltinFn((Param(NUMBER_TYPE),), to_string),
    "length": BuiltinFn((Param(array_type(ANY_TYPE)),), length),
    "index": BuiltinFn((Param(array_type(ANY_TYPE)), Param(NUMBER_TYPE)), index),
    "parse obj faces": BuiltinFn((Param(STRING_TYPE),), parse_obj_faces),
    "parse obj vertices": BuiltinFn((Param(STRING_TYPE),), parse_obj_vertices),
    "debug log": BuiltinFn((Param(ANY_TYPE),), debug_log),
    "yield": BuiltinFn((), yield_),
}


# ─── Infix operators ───────────────────────────────────────────

@dataclass(frozen=True)
class InfixOp:
    left: Param
    right: Param
    impl: Callable[[NumberObj, NumberObj, Element], Obj]


def _divide(a: float, b: float) -> float:
    if b == 0:
        if a == 0 or math.isnan(a):
            return math.nan
        return math.copysign(math.inf, a) * math.copysign(1.0, b)
    return a / b


def _remainder(a: float, b: float) -> float:
    # Truncated remainder: the sign follows the dividend.
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan


def _arithmetic(fn: Callable[[float, float], float]):
    return lambda left, right, at: NumberObj(value=fn(left.value, right.value), at=at)


def _comparison(fn: Callable[[float, float], bool]):
    return lambda left, right, at: boolean(fn(left.value, right.value), at)


_LEFT = Param(NUMBER_TYPE, "left")
_RIGHT = Param(NUMBER_TYPE, "right")
_NUMBER = Param(NUMBER_TYPE)

INFIX_OPERATOR_IMPLS: Dict[str, InfixOp] = {
    "/": InfixOp(_LEFT, _RIGHT, _arithmetic(_divide)),
    "%": InfixOp(_LEFT, _RIGHT, _arithmetic(_remainder)),
    "-": InfixOp(_LEFT, _RIGHT, _arithmetic(lambda a, b: a - b)),
    "*": InfixOp(_NUMBER, _NUMBER, _arithmetic(lambda a, b: a * b)),
    "+": InfixOp(_NUMBER, _NUMBER, _arithmetic(lambda a, b: a + b)),
    "<": InfixOp(_LEFT, _RIGHT, _comparison(lambda a, b: a < b)),
    ">": InfixOp(_LEFT, _RIGHT, _comparison(lambda a, b: a > b)),
    "<=": InfixOp(_LEFT, _RIGHT, _comparison(lambda a, b: a <= b)),
    ">=": InfixOp(_LEFT, _RIGHT, _comparison(lambda a, b: a >= b)),
}
