"""Pydantic schemas for BoardFlow diagram documents.

Elements and connectors are read-only inputs to the compiler. An element's
``id`` doubles as the key of the runtime variable store, so models are
frozen and compare by value.
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# Element kinds understood by the compiler. Anything else is kept but ignored.
TEXT = "TEXT"
SHAPE_WITH_TEXT = "SHAPE_WITH_TEXT"
SECTION = "SECTION"

# Shape types with a meaning of their own.
SQUARE = "SQUARE"
ELLIPSE = "ELLIPSE"
ENG_DATABASE = "ENG_DATABASE"
TRIANGLE_UP = "TRIANGLE_UP"

NO_CAP = "NONE"


class Element(BaseModel):
    """A positioned visual primitive on the board."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: str
    name: str = ""
    text: str = Field(default="", description="Characters of a text element or of a shape's label")
    shape: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    width: float = 100.0
    height: float = 100.0
    font_style: Optional[str] = Field(default="Regular", description="None when the text mixes several fonts")
    parent: Optional[str] = None

    @field_validator("kind", mode="before")
    @classmethod
    def coerce_kind(cls, v: Any) -> str:
        """Normalize kinds like 'text' or 'shape-with-text'."""
        return str(v).strip().upper().replace("-", "_")

    @field_validator("shape", mode="before")
    @classmethod
    def coerce_shape(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        return str(v).strip().upper().replace("-", "_")

    @property
    def is_text(self) -> bool:
        return self.kind == TEXT

    @property
    def is_shape(self) -> bool:
        return self.kind == SHAPE_WITH_TEXT

    @property
    def is_section(self) -> bool:
        return self.kind == SECTION

    @property
    def label(self) -> str:
        return self.text.strip()


class Connector(BaseModel):
    """A link between two elements. Each endpoint carries its own cap."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    start: Optional[str] = None
    end: Optional[str] = None
    start_cap: str = NO_CAP
    end_cap: str = NO_CAP

    @field_validator("start_cap", "end_cap", mode="before")
    @classmethod
    def coerce_cap(cls, v: Any) -> str:
        if v is None:
            return NO_CAP
        return str(v).strip().upper() or NO_CAP

    @property
    def attached(self) -> bool:
        return self.start is not None and self.end is not None


class DiagramDocument(BaseModel):
    """On-disk form of a board: flat lists of elements and connectors."""
    elements: List[Element] = Field(default_factory=list)
    connectors: List[Connector] = Field(default_factory=list)

    @field_validator("elements", "connectors", mode="before")
    @classmethod
    def ensure_list(cls, v: Any) -> List[Any]:
        if v is None:
            return []
        return v


def validate_document(data: Dict[str, Any]) -> DiagramDocument:
    """Validate a raw JSON object as a diagram document.

    Raises:
        DiagramError: If validation fails
    """
    from .errors import DiagramError

    try:
        return DiagramDocument.model_validate(data)
    except Exception as e:
        raise DiagramError(f"Diagram document failed validation: {e}")
