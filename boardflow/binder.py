from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .errors import EvalError
from .markers import Diagnostics
from .schemas import Element
from .types import Obj, Type, types_eq

@dataclass(frozen=True)
class Param:
    type: Type
    name: Optional[str] = None

@dataclass
class Actual:
    obj: Obj
    name: Optional[str] = None

def pick_args(params: Sequence[Param], actuals: Sequence[Actual], at: Element,
              diagnostics: Diagnostics) -> List[Obj]:
    """Bind an instruction's unordered inputs to a builtin's parameter list.

    Named parameters claim actuals first, then every still-unbound parameter
    takes the first remaining actual of a matching type. Leftovers are
    warned about and dropped; an unbound parameter is fatal.
    """
    remaining = list(actuals)
    args: List[Optional[Obj]] = [None] * len(params)

    for i, param in enumerate(params):
        if param.name is None:
            continue
        index = next((j for j, actual in enumerate(remaining) if actual.name == param.name), None)
        if index is None:
            continue
        args[i] = remaining.pop(index).obj

    for i, param in enumerate(params):
        if args[i] is not None:
            continue
        index = next((j for j, actual in enumerate(remaining) if types_eq(actual.obj.type, param.type)), None)
        if index is None:
            continue
        args[i] = remaining.pop(index).obj

    for actual in remaining:
        diagnostics.warn("extraneous input has been ignored.", actual.obj.at)

    for i, param in enumerate(params):
        if args[i] is not None:
            continue
        message = f"missing argument of type '{param.type.kind.value}'"
        if param.name is not None:
            message += f" with name '{param.name}'"
        message += f" at position {i}."
        raise EvalError(message, at)

    return args
