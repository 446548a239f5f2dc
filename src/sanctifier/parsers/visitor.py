"""Traversal helpers for syntax trees, modelled on the stdlib ``ast`` helpers.

Traversal is iterative so that deeply nested contract code cannot exhaust
the interpreter stack while a detector is walking it.
"""

from __future__ import annotations

from dataclasses import fields
from functools import lru_cache
from typing import Callable, Iterator

from sanctifier.parsers.nodes import (
    Function,
    Impl,
    Item,
    Module,
    Node,
    SyntaxTree,
    Trait,
)


@lru_cache(maxsize=None)
def _child_fields(node_type: type) -> tuple[str, ...]:
    return tuple(f.name for f in fields(node_type) if f.name not in ("span", "source"))


def iter_child_nodes(node: Node) -> Iterator[Node]:
    """Yield the direct children of ``node`` in source order."""
    for name in _child_fields(type(node)):
        value = getattr(node, name)
        if isinstance(value, Node):
            yield value
        elif isinstance(value, tuple):
            for item in value:
                if isinstance(item, Node):
                    yield item


def walk(node: Node, *, skip_items: bool = False) -> Iterator[Node]:
    """Yield ``node`` and all of its descendants in pre-order.

    Args:
        node: Root of the traversal.
        skip_items: When True, item definitions nested below ``node``
            (functions, impls, modules declared inside a body) are neither
            yielded nor entered. Used to restrict a walk to one function body.
    """
    stack: list[Node] = [node]
    while stack:
        current = stack.pop()
        yield current
        children = [
            child for child in iter_child_nodes(current)
            if not (skip_items and isinstance(child, Item))
        ]
        stack.extend(reversed(children))


def iter_functions(tree: SyntaxTree, *, include_traits: bool = False) -> Iterator[Function]:
    """Yield every function definition in the tree, in source order.

    Covers free functions, impl methods, functions in nested modules and
    functions declared inside other function bodies. Trait default methods
    are included only when ``include_traits`` is set.
    """
    stack: list[Node] = [tree]
    while stack:
        current = stack.pop()
        if isinstance(current, Trait) and not include_traits:
            continue
        if isinstance(current, Function):
            yield current
        stack.extend(reversed(list(iter_child_nodes(current))))


def iter_impl_functions(tree: SyntaxTree) -> Iterator[tuple[Impl, Function]]:
    """Yield ``(impl, method)`` pairs for impl blocks at the top level of the file."""
    for item in tree.items:
        if isinstance(item, Impl):
            for member in item.items:
                if isinstance(member, Function):
                    yield item, member


def iter_top_level_functions(tree: SyntaxTree) -> Iterator[Function]:
    """Yield free functions declared at the top level of the file."""
    for item in tree.items:
        if isinstance(item, Function):
            yield item


def iter_items(tree: SyntaxTree) -> Iterator[Item]:
    """Yield top-level items and items of inline modules, recursively."""
    stack: list[Item] = list(reversed(tree.items))
    while stack:
        item = stack.pop()
        yield item
        if isinstance(item, Module) and item.items:
            stack.extend(reversed(item.items))


def has_attribute(item: Node, name: str) -> bool:
    """Return True if ``item`` carries an outer attribute whose last path segment is ``name``."""
    return any(attr.name == name for attr in getattr(item, "attrs", ()))


class NodeVisitor:
    """Walks a tree and calls ``visit_<ClassName>`` for every node found.

    Works like :class:`ast.NodeVisitor`: subclasses add ``visit_Call``,
    ``visit_MethodCall`` and so on, and call :meth:`generic_visit` to
    continue into a node's children.

    Unlike the stdlib visitor, traversal does not recurse. ``generic_visit``
    and nested ``visit`` calls schedule nodes, which run in source order
    once the current ``visit_*`` method returns. Work that must see the
    children first is registered with :meth:`defer`. Trees for long
    left-associative chains (``a + b + c + ...``, ``x.f().f().f()``) are as
    deep as the chain is long.
    """

    _pending: list[Node | Callable[[], None]] | None = None

    def visit(self, node: Node) -> None:
        if self._pending is not None:
            self._pending.append(node)
            return
        stack: list[Node | Callable[[], None]] = [node]
        try:
            while stack:
                current = stack.pop()
                if not isinstance(current, Node):
                    current()
                    continue
                self._pending = []
                method = getattr(self, f"visit_{type(current).__name__}", self.generic_visit)
                method(current)
                stack.extend(reversed(self._pending))
                self._pending = None
        finally:
            self._pending = None

    def generic_visit(self, node: Node) -> None:
        for child in iter_child_nodes(node):
            self.visit(child)

    def defer(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` after the nodes scheduled so far by the current ``visit_*`` method."""
        if self._pending is None:
            callback()
        else:
            self._pending.append(callback)
