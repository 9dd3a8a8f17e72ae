"""Render surface contract, object handles and their field tables.

A running window draws into a `RenderSurface` supplied by the host. Programs
see the surface through handles (window, sprite, text) whose geometry is
pulled from the surface by `refresh()` right before every field read.

Property access from a program goes through a fixed field table per value
kind: (kind, field name) -> typed getter/setter. Unknown fields, read-only
fields and mistyped values are fatal property errors.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass
from itertools import count
from typing import Any, Callable, Dict, Optional, Protocol, Tuple, Union

from .errors import EvalError
from .schemas import Element
from .types import (
    NUMBER_TYPE,
    STRING_TYPE,
    ArrayObj,
    GraphicObj,
    NumberObj,
    Obj,
    SpriteObj,
    StringObj,
    TextObj,
    Type,
    types_eq,
)

DEFAULT_FONT_SIZE = 20


@dataclass
class Bounds:
    x: float
    y: float
    width: float
    height: float


class RenderSurface(Protocol):
    def clear(self) -> None: ...
    def bounds(self) -> Bounds: ...
    def resize(self, width: float, height: float) -> None: ...
    async def add_sprite(self, graphic: Element) -> str: ...
    async def add_text(self, font_size: float = DEFAULT_FONT_SIZE) -> str: ...
    async def add_line(self, start_x: float, start_y: float, end_x: float, end_y: float) -> str: ...
    def object_bounds(self, object_id: str) -> Bounds: ...
    def text_of(self, object_id: str) -> Tuple[str, float]: ...
    def move(self, object_id: str, x: Optional[float] = None, y: Optional[float] = None) -> None: ...
    def update_text(self, object_id: str, characters: Optional[str] = None,
                    font_size: Optional[float] = None) -> None: ...
    def remove(self, object_id: str) -> None: ...


# ─── Handles ───────────────────────────────────────────────────

class WindowHandle:
    """The window a program runs in, as seen through its surface."""

    def __init__(self, surface: RenderSurface):
        self.surface = surface
        self.width = 0.0
        self.height = 0.0
        self.refresh()

    def refresh(self) -> None:
        b = self.surface.bounds()
        self.width, self.height = b.width, b.height

    def resize(self, width: Optional[float] = None, height: Optional[float] = None) -> None:
        self.refresh()
        self.surface.resize(self.width if width is None else width, self.height if height is None else height)
        self.refresh()


class SpriteHandle:
    def __init__(self, surface: RenderSurface, object_id: str):
        self.surface = surface
        self.object_id = object_id
        self.x = self.y = self.width = self.height = 0.0
        self.refresh()

    def refresh(self) -> None:
        b = self.surface.object_bounds(self.object_id)
        self.x, self.y, self.width, self.height = b.x, b.y, b.width, b.height

    def move(self, x: Optional[float] = None, y: Optional[float] = None) -> None:
        self.surface.move(self.object_id, x=x, y=y)
        self.refresh()


class TextHandle(SpriteHandle):
    def __init__(self, surface: RenderSurface, object_id: str):
        self.characters = ""
        self.font_size = float(DEFAULT_FONT_SIZE)
        super().__init__(surface, object_id)

    def refresh(self) -> None:
        super().refresh()
        self.characters, self.font_size = self.surface.text_of(self.object_id)

    def update(self, characters: Optional[str] = None, font_size: Optional[float] = None) -> None:
        self.surface.update_text(self.object_id, characters=characters, font_size=font_size)
        if characters is not None:
            self.characters = characters
        if font_size is not None:
            self.font_size = font_size
        self.refresh()


# ─── Field tables ──────────────────────────────────────────────

@dataclass(frozen=True)
class Field:
    type: Type
    get: Callable[[Any], Any]
    set: Optional[Callable[[Any, Any], None]] = None


def _geometry(handle: Callable[[Any], Any], movable: bool) -> Dict[str, Field]:
    fields = {
        "x": Field(NUMBER_TYPE, lambda t: handle(t).x),
        "y": Field(NUMBER_TYPE, lambda t: handle(t).y),
        "width": Field(NUMBER_TYPE, lambda t: handle(t).width),
        "height": Field(NUMBER_TYPE, lambda t: handle(t).height),
    }
    if movable:
        fields["x"] = Field(NUMBER_TYPE, fields["x"].get, lambda t, v: handle(t).move(x=v))
        fields["y"] = Field(NUMBER_TYPE, fields["y"].get, lambda t, v: handle(t).move(y=v))
    return fields


_characters = Field(STRING_TYPE, lambda t: t.handle.characters, lambda t, v: t.handle.update(characters=v))
_font_size = Field(NUMBER_TYPE, lambda t: t.handle.font_size, lambda t, v: t.handle.update(font_size=v))

FIELD_TABLES: Dict[type, Dict[str, Field]] = {
    WindowHandle: {
        "width": Field(NUMBER_TYPE, lambda w: w.width, lambda w, v: w.resize(width=v)),
        "height": Field(NUMBER_TYPE, lambda w: w.height, lambda w, v: w.resize(height=v)),
    },
    SpriteObj: _geometry(lambda t: t.handle, movable=True),
    TextObj: {
        **_geometry(lambda t: t.handle, movable=True),
        "characters": _characters,
        "text": _characters,
        "fontSize": _font_size,
        "font size": _font_size,
    },
    GraphicObj: _geometry(lambda t: t.graphic, movable=False),
    ArrayObj: {
        "length": Field(NUMBER_TYPE, lambda t: len(t.items)),
    },
}

FieldTarget = Union[WindowHandle, Obj]


def _refresh(target: FieldTarget) -> None:
    if isinstance(target, WindowHandle):
        target.refresh()
    elif isinstance(target, (SpriteObj, TextObj)):
        target.handle.refresh()


def read_field(target: FieldTarget, name: str, at: Element) -> Obj:
    table = FIELD_TABLES.get(type(target), {})
    if name not in table:
        raise EvalError("failed to read variable", at)
    entry = table[name]
    try:
        _refresh(target)
        raw = entry.get(target)
    except EvalError:
        raise
    except Exception as e:
        raise EvalError("failed to read variable", at) from e

    if entry.type == STRING_TYPE:
        return StringObj(value=str(raw), at=at)
    return NumberObj(value=float(raw), at=at)


def write_field(target: FieldTarget, name: str, value: Obj, at: Element) -> None:
    table = FIELD_TABLES.get(type(target), {})
    entry = table.get(name)
    if entry is None or entry.set is None or not types_eq(value.type, entry.type):
        raise EvalError("failed to set variable", at)
    try:
        entry.set(target, value.value)
    except EvalError:
        raise
    except Exception as e:
        raise EvalError("failed to set variable", at) from e


# ─── Headless surface ──────────────────────────────────────────

@dataclass
class SurfaceObject:
    kind: str
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    characters: str = ""
    font_size: float = DEFAULT_FONT_SIZE


class MemorySurface:
    """Render surface that keeps the window's children in memory.

    Used by the command line runner and the test-suite; a host UI would
    implement the same methods against its real canvas.
    """

    def __init__(self, window: Element):
        self.window = window
        self.width = window.width
        self.height = window.height
        self.objects: Dict[str, SurfaceObject] = {}
        self._ids = count(1)

    def _new_id(self, kind: str) -> str:
        return f"{self.window.id}/{kind}-{next(self._ids)}"

    def clear(self) -> None:
        self.objects.clear()

    def bounds(self) -> Bounds:
        return Bounds(self.window.x, self.window.y, self.width, self.height)

    def resize(self, width: float, height: float) -> None:
        self.width, self.height = float(width), float(height)

    async def add_sprite(self, graphic: Element) -> str:
        object_id = self._new_id("sprite")
        self.objects[object_id] = SurfaceObject("SPRITE", width=graphic.width, height=graphic.height)
        return object_id

    async def add_text(self, font_size: float = DEFAULT_FONT_SIZE) -> str:
        # Stands in for the host's asynchronous font loading.
        await asyncio.sleep(0)
        object_id = self._new_id("text")
        self.objects[object_id] = SurfaceObject("TEXT", font_size=font_size)
        self._measure(self.objects[object_id])
        return object_id

    async def add_line(self, start_x: float, start_y: float, end_x: float, end_y: float) -> str:
        object_id = self._new_id("line")
        self.objects[object_id] = SurfaceObject(
            "LINE",
            x=min(start_x, end_x),
            y=min(start_y, end_y),
            width=abs(end_x - start_x),
            height=abs(end_y - start_y),
        )
        return object_id

    def object_bounds(self, object_id: str) -> Bounds:
        obj = self.objects[object_id]
        return Bounds(obj.x, obj.y, obj.width, obj.height)

    def move(self, object_id: str, x: Optional[float] = None, y: Optional[float] = None) -> None:
        obj = self.objects[object_id]
        if x is not None:
            obj.x = float(x)
        if y is not None:
            obj.y = float(y)

    def text_of(self, object_id: str) -> Tuple[str, float]:
        obj = self.objects[object_id]
        return obj.characters, obj.font_size

    def update_text(self, object_id: str, characters: Optional[str] = None,
                    font_size: Optional[float] = None) -> None:
        obj = self.objects[object_id]
        if characters is not None:
            obj.characters = characters
        if font_size is not None:
            obj.font_size = float(font_size)
        self._measure(obj)

    def remove(self, object_id: str) -> None:
        self.objects.pop(object_id, None)

    @staticmethod
    def _measure(obj: SurfaceObject) -> None:
        # Rough monospace metrics; good enough for collision tests.
        obj.width = len(obj.characters) * obj.font_size * 0.6
        obj.height = obj.font_size * 1.2
