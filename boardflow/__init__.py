from .compiler import Compiler, compile_page
from .config import RuntimeConfig, configure_logging
from .errors import BoardFlowError, DiagramError, EvalError, ParseError, StepLimitExceeded
from .graph_engine import Diagram
from .persistence import load_diagram, save_diagram
from .runtime import Runtime

__all__ = [
    "BoardFlowError",
    "Compiler",
    "Diagram",
    "DiagramError",
    "EvalError",
    "ParseError",
    "Runtime",
    "RuntimeConfig",
    "StepLimitExceeded",
    "compile_page",
    "configure_logging",
    "load_diagram",
    "save_diagram",
]
