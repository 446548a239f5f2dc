"""Tests for syntax tree traversal helpers."""

from __future__ import annotations

from sanctifier.parsers import NodeVisitor, iter_child_nodes, walk
from sanctifier.parsers.nodes import Function, MethodCall, Struct
from sanctifier.parsers.visitor import (
    has_attribute,
    iter_functions,
    iter_impl_functions,
    iter_items,
    iter_top_level_functions,
)

NESTED = """
pub fn free() {
    fn inner() { helper(); }
    inner();
}

mod utils {
    pub fn in_module() {}
}

trait Hook {
    fn default_body(&self) { noop(); }
}

impl Thing {
    pub fn method(&self) { self.other(); }
}
"""


class TestFunctionIterators:
    """Which functions each iterator yields."""

    def test_iter_functions_skips_traits(self, parse_rust) -> None:
        names = [fn.name for fn in iter_functions(parse_rust(NESTED))]
        assert names == ["free", "inner", "in_module", "method"]

    def test_iter_functions_with_traits(self, parse_rust) -> None:
        names = [fn.name for fn in iter_functions(parse_rust(NESTED), include_traits=True)]
        assert "default_body" in names

    def test_impl_functions_are_top_level_only(self, parse_rust) -> None:
        pairs = list(iter_impl_functions(parse_rust(NESTED)))
        assert [(impl.self_type.name, fn.name) for impl, fn in pairs] == [("Thing", "method")]

    def test_top_level_functions(self, parse_rust) -> None:
        assert [fn.name for fn in iter_top_level_functions(parse_rust(NESTED))] == ["free"]

    def test_iter_items_enters_modules(self, parse_rust) -> None:
        items = list(iter_items(parse_rust(NESTED)))
        names = [getattr(item, "name", None) for item in items]
        assert names[:3] == ["free", "utils", "in_module"]


class TestWalk:
    """Pre-order traversal."""

    def test_walk_is_preorder(self, parse_rust) -> None:
        tree = parse_rust("fn f() { a.b().c(); }")
        methods = [node.method for node in walk(tree) if isinstance(node, MethodCall)]
        assert methods == ["c", "b"]

    def test_skip_items_stops_at_nested_functions(self, parse_rust) -> None:
        tree = parse_rust(NESTED)
        free = tree.items[0]
        nested = [n for n in walk(free.body, skip_items=True) if isinstance(n, Function)]
        assert nested == []
        assert any(isinstance(n, Function) and n.name == "inner" for n in walk(free.body))

    def test_child_nodes_exclude_strings(self, parse_rust) -> None:
        tree = parse_rust("fn f(x: u64) {}")
        children = list(iter_child_nodes(tree.items[0]))
        assert [type(child).__name__ for child in children] == ["Param", "Block"]


class TestNodeVisitor:
    """Dispatch to visit_<ClassName> methods."""

    def test_dispatch_and_generic_visit(self, parse_rust) -> None:
        class Collector(NodeVisitor):
            def __init__(self) -> None:
                self.methods: list[str] = []

            def visit_MethodCall(self, node: MethodCall) -> None:
                self.methods.append(node.method)
                self.generic_visit(node)

        collector = Collector()
        collector.visit(parse_rust("fn f() { a.b(x.y()).c(); }"))
        assert collector.methods == ["c", "b", "y"]

    def test_visitor_can_prune(self, parse_rust) -> None:
        class StructCounter(NodeVisitor):
            count = 0

            def visit_Struct(self, node: Struct) -> None:
                self.count += 1

            def visit_Function(self, node: Function) -> None:
                return

        counter = StructCounter()
        counter.visit(parse_rust("struct A; fn f() { struct Hidden; }"))
        assert counter.count == 1

    def test_long_left_associative_chain(self, parse_rust) -> None:
        class BinaryCounter(NodeVisitor):
            count = 0

            def visit_Binary(self, node) -> None:
                self.count += 1
                self.generic_visit(node)

        source = "fn f(a: u64) -> u64 { " + " + ".join(["a"] * 3000) + " }"
        counter = BinaryCounter()
        counter.visit(parse_rust(source))
        assert counter.count == 2999

    def test_deferred_callback_runs_after_children(self, parse_rust) -> None:
        class Events(NodeVisitor):
            def __init__(self) -> None:
                self.events: list[str] = []

            def visit_Let(self, node) -> None:
                self.events.append("let")
                self.generic_visit(node)
                self.defer(lambda: self.events.append("bound"))

            def visit_MethodCall(self, node: MethodCall) -> None:
                self.events.append(node.method)
                self.generic_visit(node)

        events = Events()
        events.visit(parse_rust("fn f() { let x = a.b(); c.d(); }"))
        assert events.events == ["let", "b", "bound", "d"]

    def test_defer_outside_a_visit_runs_now(self) -> None:
        ran: list[int] = []
        NodeVisitor().defer(lambda: ran.append(1))
        assert ran == [1]


class TestAttributes:
    def test_has_attribute_uses_last_segment(self, parse_rust) -> None:
        struct = parse_rust("#[soroban_sdk::contract] pub struct C;").items[0]
        assert has_attribute(struct, "contract")
        assert not has_attribute(struct, "contracttype")
