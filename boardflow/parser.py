from pathlib import Path
from typing import Optional

from lark import Lark, Tree
from lark.exceptions import LarkError

from .errors import ParseError

GRAMMAR_PATH = Path(__file__).with_name("label.lark")

_parser = None

def _load_parser() -> Lark:
    global _parser
    if _parser is None:
        grammar = GRAMMAR_PATH.read_text(encoding="utf-8")
        _parser = Lark(grammar, start="start", parser="lalr")
    return _parser

def parse(text: str) -> Tree:
    try:
        return _load_parser().parse(text.strip())
    except LarkError as e:
        raise ParseError(str(e)) from e

def try_parse_number(text: str) -> Optional[float]:
    try:
        tree = parse(text)
    except ParseError:
        return None
    if tree.data != "number":
        return None
    return float(tree.children[0])

def try_parse_string(text: str) -> Optional[str]:
    try:
        tree = parse(text)
    except ParseError:
        return None
    if tree.data != "string":
        return None
    # Strip the opening and closing quote, whichever characters they are.
    return str(tree.children[0])[1:-1]
