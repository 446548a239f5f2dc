"""Cross-contract call graph extraction and Graphviz rendering.

Two call shapes produce edges:

* ``env.invoke_contract(&addr, &symbol_short!("f"), args)`` and its
  ``try_invoke_contract`` variant. The callee is the address argument as
  written, the function is the symbol literal.
* Typed clients: ``let c = TokenClient::new(&env, &addr); c.transfer(..)``
  gives an edge to ``Token`` labelled ``transfer``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable

from sanctifier.parsers.nodes import (
    Call,
    Expr,
    Item,
    Let,
    Literal,
    MacroCall,
    MethodCall,
    Node,
    PathExpr,
    Reference,
    Struct,
    SyntaxTree,
)
from sanctifier.parsers.visitor import NodeVisitor, has_attribute, iter_child_nodes, iter_functions, iter_items

INVOKE_METHODS = frozenset({"invoke_contract", "try_invoke_contract"})
CLIENT_SUFFIX = "Client"

_BINDING = re.compile(r"^(?:mut\s+)?([A-Za-z_][A-Za-z0-9_]*)$")


@dataclass(frozen=True)
class CallEdge:
    """One cross-contract call site."""

    caller: str
    callee: str
    function: str
    file: str
    line: int

    def to_dict(self) -> dict[str, Any]:
        return dict(vars(self))


def _client_contract(expr: Expr | None) -> str | None:
    """Return ``Foo`` for ``FooClient::new(..)``, else None."""
    if not isinstance(expr, Call) or not isinstance(expr.func, PathExpr):
        return None
    segments = expr.func.segments
    if len(segments) < 2 or segments[-1] != "new":
        return None
    type_name = segments[-2]
    if type_name.endswith(CLIENT_SUFFIX) and len(type_name) > len(CLIENT_SUFFIX):
        return type_name[: -len(CLIENT_SUFFIX)]
    return None


def _symbol_name(tree: SyntaxTree, expr: Expr) -> str:
    while isinstance(expr, Reference):
        expr = expr.operand
    if isinstance(expr, MacroCall) and expr.name == "symbol_short" and expr.args:
        first = expr.args[0]
        if isinstance(first, Literal) and first.kind == "str":
            return first.value
    if isinstance(expr, Call) and isinstance(expr.func, PathExpr):
        if expr.func.segments[-2:] == ("Symbol", "new") and len(expr.args) >= 2:
            name = expr.args[1]
            if isinstance(name, Literal) and name.kind == "str":
                return name.value
    return tree.text_of(expr)


def _address_text(tree: SyntaxTree, expr: Expr) -> str:
    while isinstance(expr, Reference):
        expr = expr.operand
    return tree.text_of(expr)


class _CallCollector(NodeVisitor):
    """Collects edges from one function body; nested items are not entered."""

    def __init__(self, tree: SyntaxTree, caller: str, file: str) -> None:
        self.tree = tree
        self.caller = caller
        self.file = file
        self.clients: dict[str, str] = {}
        self.edges: list[CallEdge] = []

    def generic_visit(self, node: Node) -> None:
        for child in iter_child_nodes(node):
            if not isinstance(child, Item):
                self.visit(child)

    def visit_Let(self, node: Let) -> None:
        self.generic_visit(node)
        # The initializer still sees the previous binding of the name.
        self.defer(lambda: self._bind(node))

    def _bind(self, node: Let) -> None:
        contract = _client_contract(node.init)
        match = _BINDING.match(node.pattern)
        if match is None:
            return
        if contract is not None:
            self.clients[match.group(1)] = contract
        else:
            # Rebinding shadows an earlier client of the same name.
            self.clients.pop(match.group(1), None)

    def visit_MethodCall(self, node: MethodCall) -> None:
        if node.method in INVOKE_METHODS and len(node.args) >= 2:
            self._add(_address_text(self.tree, node.args[0]), _symbol_name(self.tree, node.args[1]), node)
        else:
            contract = self._receiver_contract(node.receiver)
            if contract is not None:
                self._add(contract, node.method, node)
        self.generic_visit(node)

    def _receiver_contract(self, receiver: Expr) -> str | None:
        if isinstance(receiver, PathExpr) and len(receiver.segments) == 1:
            return self.clients.get(receiver.segments[0])
        return _client_contract(receiver)

    def _add(self, callee: str, function: str, node: Node) -> None:
        self.edges.append(CallEdge(self.caller, callee, function, self.file, node.line))


def scan_invoke_contract_calls(tree: SyntaxTree | None, caller: str, file: str) -> list[CallEdge]:
    """Return the cross-contract call edges of every function in ``tree``."""
    if tree is None:
        return []
    edges: list[CallEdge] = []
    for fn in iter_functions(tree):
        if fn.body is None:
            continue
        collector = _CallCollector(tree, caller, file)
        collector.visit(fn.body)
        edges.extend(collector.edges)
    return edges


def infer_contract_name(tree: SyntaxTree | None) -> str | None:
    """Return the name of the ``#[contract]`` struct, if the file declares one."""
    if tree is None:
        return None
    for item in iter_items(tree):
        if isinstance(item, Struct) and has_attribute(item, "contract"):
            return item.name
    return None


def _quote(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def callgraph_to_dot(edges: Iterable[CallEdge]) -> str:
    """Render edges as a Graphviz digraph; repeated call sites collapse into one edge."""
    lines = ["digraph callgraph {", "  rankdir=LR;", "  node [shape=box];"]
    seen: set[tuple[str, str, str]] = set()
    for edge in edges:
        key = (edge.caller, edge.callee, edge.function)
        if key in seen:
            continue
        seen.add(key)
        lines.append(
            f"  {_quote(edge.caller)} -> {_quote(edge.callee)} [label={_quote(edge.function)}];"
        )
    lines.append("}")
    return "\n".join(lines) + "\n"
