import json
from pathlib import Path
from typing import Any, Dict, Union

from loguru import logger

from .errors import DiagramError
from .graph_engine import Diagram
from .schemas import validate_document


def load_diagram(path: Union[str, Path]) -> Diagram:
    """Load a board from a JSON document on disk."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Diagram file not found: {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise DiagramError(f"Diagram file {path} is not valid JSON: {e}") from e

    diagram = diagram_from_dict(raw)
    logger.debug("loaded diagram {} ({} elements, {} connectors)", path, diagram.node_count, diagram.edge_count)
    return diagram


def diagram_from_dict(raw: Dict[str, Any]) -> Diagram:
    if not isinstance(raw, dict):
        raise DiagramError("Diagram document must be a JSON object")
    return Diagram.from_document(validate_document(raw))


def save_diagram(diagram: Diagram, path: Union[str, Path]) -> Path:
    """Write a board as a JSON document. Returns the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = diagram.to_document()
    path.write_text(json.dumps(document.model_dump(mode="json"), indent=2, ensure_ascii=False), encoding="utf-8")
    return path
