from __future__ import annotations
from enum import Enum
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, FrozenSet, List, Optional, Union

from .schemas import Element

if TYPE_CHECKING:
    from .ast import FlowAst
    from .render import SpriteHandle, TextHandle

class TypeKind(str, Enum):
    Number = "NUMBER"
    String = "STRING"
    Sprite = "SPRITE"
    Text = "TEXT"
    Graphic = "GRAPHIC"
    Flow = "FLOW"
    Enum = "ENUM"
    Array = "ARRAY"
    Any = "ANY"

@dataclass(frozen=True)
class Type:
    kind: TypeKind
    options: FrozenSet[str] = frozenset()  # Enum only
    item: Optional[Type] = None  # Array only

    def __str__(self) -> str:
        if self.kind == TypeKind.Array and self.item is not None:
            return f"ARRAY<{self.item}>"
        return self.kind.value

NUMBER_TYPE = Type(TypeKind.Number)
STRING_TYPE = Type(TypeKind.String)
SPRITE_TYPE = Type(TypeKind.Sprite)
TEXT_TYPE = Type(TypeKind.Text)
GRAPHIC_TYPE = Type(TypeKind.Graphic)
FLOW_TYPE = Type(TypeKind.Flow)
ANY_TYPE = Type(TypeKind.Any)

def enum_type(options) -> Type:
    return Type(TypeKind.Enum, options=frozenset(options))

def array_type(item: Type) -> Type:
    return Type(TypeKind.Array, item=item)

BOOLEAN_TYPE = enum_type(["yes", "no"])

def types_eq(a: Type, b: Type) -> bool:
    """Structural type match. ANY matches (and is matched by) everything."""
    if a.kind == TypeKind.Any or b.kind == TypeKind.Any:
        return True
    if a.kind != b.kind:
        return False
    if a.kind == TypeKind.Enum:
        return a.options == b.options
    if a.kind == TypeKind.Array:
        return types_eq(a.item or ANY_TYPE, b.item or ANY_TYPE)
    return True

# ─── Runtime values ─────────────────────────────────────────────

@dataclass
class NumberObj:
    value: float
    at: Element
    type: Type = NUMBER_TYPE

@dataclass
class StringObj:
    value: str
    at: Element
    type: Type = STRING_TYPE

@dataclass
class EnumObj:
    type: Type
    selected: FrozenSet[str]
    at: Element

@dataclass
class ArrayObj:
    type: Type
    items: List[Obj]
    at: Element

@dataclass
class GraphicObj:
    """Handle to a visual primitive on the board (or one drawn by the program)."""
    graphic: Element
    at: Element
    type: Type = GRAPHIC_TYPE

@dataclass
class SpriteObj:
    handle: SpriteHandle
    at: Element
    type: Type = SPRITE_TYPE

@dataclass
class TextObj:
    handle: TextHandle
    at: Element
    type: Type = TEXT_TYPE

@dataclass
class FlowObj:
    flow: FlowAst
    at: Element
    type: Type = FLOW_TYPE

Obj = Union[NumberObj, StringObj, EnumObj, ArrayObj, GraphicObj, SpriteObj, TextObj, FlowObj]

def boolean(value: bool, at: Element) -> EnumObj:
    return EnumObj(type=BOOLEAN_TYPE, selected=frozenset(["yes" if value else "no"]), at=at)


def format_number(value: float) -> str:
    """Render a number the way the board host prints it.

    Shortest round-tripping digits; plain decimals from 1e-6 up to 1e21 with
    integral values lacking '.0', exponent form ('1e+21', '1.5e-7') outside.
    """
    if value != value:
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    _, raw, exponent = Decimal(repr(abs(float(value)))).as_tuple()
    raw = "".join(map(str, raw))
    digits = raw.rstrip("0")
    exponent += len(raw) - len(digits)
    # value == 0.<digits> * 10**point
    point = len(digits) + exponent
    if len(digits) <= point <= 21:
        return sign + digits + "0" * (point - len(digits))
    if 0 < point <= 21:
        return sign + digits[:point] + "." + digits[point:]
    if -6 < point <= 0:
        return sign + "0." + "0" * -point + digits
    e = point - 1
    mantissa = digits if len(digits) == 1 else digits[0] + "." + digits[1:]
    return f"{sign}{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
