from .ast import (
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
    WindowAst,
)
from .types import format_number


def indent(text: str, levels: int) -> str:
    return "\n".join("  " * levels + line for line in text.split("\n"))


def stringify_ast(node) -> str:
    """Readable dump of a syntax tree, one construct per line."""
    if isinstance(node, WindowAst):
        return "\n".join([
            f"window '{node.name}'",
            indent(stringify_ast(node.setup) if node.setup else "no setup", 1),
            indent(stringify_ast(node.loop) if node.loop else "no loop", 1),
        ])

    if isinstance(node, FlowAst):
        body = stringify_ast(node.first) if node.first else "no instructions"
        return f"flow '{node.name}'\n" + indent(body, 1)

    if isinstance(node, InstructionAst):
        lines = [stringify_ast(node.instruction)]
        for data in node.inputs:
            lines.append(indent("← " + stringify_ast(data), 1))
        for data in node.outputs:
            lines.append(indent("→ " + stringify_ast(data), 1))
        if node.match_arms:
            for label, arm in node.match_arms.items():
                lines.append(indent(f"match '{label}':", 1))
                lines.append(indent(stringify_ast(arm), 2))
        if node.next:
            lines.append(stringify_ast(node.next))
        return "\n".join(lines)

    if isinstance(node, LoopAst):
        body = stringify_ast(node.body) if node.body else "no body"
        return "loop\n" + indent(body, 1)

    if isinstance(node, GraphicAst):
        return "[graphic]"
    if isinstance(node, FileAst):
        return "[file]"

    if isinstance(node, InfixAst):
        text = "infix "
        if node.left:
            text += f"[{stringify_ast(node.left)}] "
        text += node.operator
        if node.right:
            text += f" [{stringify_ast(node.right)}]"
        return text

    if isinstance(node, FunctionAst):
        return f"function '{node.text}'"
    if isinstance(node, NumberAst):
        return f"number {format_number(node.value)}"
    if isinstance(node, StringAst):
        return f"string '{node.value}'"
    if isinstance(node, VariableAst):
        return f"variable '{node.name}' ({node.at.id})"

    if isinstance(node, PropertyAst):
        text = f"property '{node.name}' of"
        if node.on_current_window:
            return text + " current window"
        return text + ":\n" + indent(stringify_ast(node.parent), 1)

    raise TypeError(f"not a syntax tree node: {node!r}")
