"""Static instruction and memory estimates for public contract functions.

The estimate is a weighted count of operations in the function body, not a
metering of real execution. Weights:

==========================================  ============  ========
operation                                   instructions  bytes
==========================================  ============  ========
function entry                              50            64
storage read (``get``, ``has``)             200           64
storage write (``set``, ``update``, ...)    1000
any other method or function call           25
arithmetic binary operator                  2
``let`` binding                                           32
collection construction (``Vec::new``...)                 128
==========================================  ============  ========

Instruction costs inside a loop body are multiplied by 10 for every
enclosing loop.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sanctifier.parsers import parse_source
from sanctifier.parsers.nodes import (
    Binary,
    Call,
    ForLoop,
    Function,
    Item,
    Let,
    Loop,
    MacroCall,
    MethodCall,
    Node,
    PathExpr,
    SyntaxTree,
    While,
)
from sanctifier.parsers.visitor import iter_child_nodes, iter_impl_functions

BASE_INSTRUCTIONS = 50
BASE_MEMORY_BYTES = 64
CALL_INSTRUCTIONS = 25
STORAGE_READ_INSTRUCTIONS = 200
STORAGE_WRITE_INSTRUCTIONS = 1000
ARITHMETIC_INSTRUCTIONS = 2
LET_MEMORY_BYTES = 32
COLLECTION_MEMORY_BYTES = 128
STORAGE_READ_MEMORY_BYTES = 64
LOOP_MULTIPLIER = 10

STORAGE_READS = frozenset({"get", "has"})
STORAGE_WRITES = frozenset({"set", "update", "remove", "try_update"})
ARITHMETIC_OPS = frozenset({"+", "-", "*", "/", "%", "+=", "-=", "*=", "/=", "%="})
COLLECTION_TYPES = frozenset({"Vec", "Map", "Bytes"})
COLLECTION_CONSTRUCTORS = frozenset({"new", "from_array", "from_slice", "from_val"})
COLLECTION_MACROS = frozenset({"vec", "map", "bytes"})


@dataclass(frozen=True)
class GasEstimationReport:
    function_name: str
    estimated_instructions: int
    estimated_memory_bytes: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "function_name": self.function_name,
            "estimated_instructions": self.estimated_instructions,
            "estimated_memory_bytes": self.estimated_memory_bytes,
        }


def _is_collection_constructor(node: Node) -> bool:
    if isinstance(node, Call) and isinstance(node.func, PathExpr):
        segments = node.func.segments
        return (
            len(segments) >= 2
            and segments[-2] in COLLECTION_TYPES
            and segments[-1] in COLLECTION_CONSTRUCTORS
        )
    return isinstance(node, MacroCall) and node.name in COLLECTION_MACROS


def _node_cost(node: Node) -> tuple[int, int]:
    """Return ``(instructions, bytes)`` charged for ``node`` itself."""
    instructions = memory = 0
    if isinstance(node, MethodCall):
        if node.method in STORAGE_WRITES:
            instructions += STORAGE_WRITE_INSTRUCTIONS
        elif node.method in STORAGE_READS:
            instructions += STORAGE_READ_INSTRUCTIONS
            memory += STORAGE_READ_MEMORY_BYTES
        else:
            instructions += CALL_INSTRUCTIONS
    elif isinstance(node, Call):
        instructions += CALL_INSTRUCTIONS
    elif isinstance(node, Binary) and node.op in ARITHMETIC_OPS:
        instructions += ARITHMETIC_INSTRUCTIONS
    elif isinstance(node, Let):
        memory += LET_MEMORY_BYTES
    if _is_collection_constructor(node):
        memory += COLLECTION_MEMORY_BYTES
    return instructions, memory


def _loop_body(node: Node) -> Node | None:
    if isinstance(node, (Loop, While, ForLoop)):
        return node.body
    return None


class GasEstimator:
    """Estimates instruction and memory cost of public contract methods."""

    def estimate_function(self, fn: Function) -> GasEstimationReport:
        instructions = BASE_INSTRUCTIONS
        memory = BASE_MEMORY_BYTES
        if fn.body is not None:
            stack: list[tuple[Node, int]] = [(fn.body, 1)]
            while stack:
                node, multiplier = stack.pop()
                node_instructions, node_memory = _node_cost(node)
                instructions += node_instructions * multiplier
                memory += node_memory
                body = _loop_body(node)
                for child in iter_child_nodes(node):
                    if isinstance(child, Item):
                        continue
                    child_multiplier = multiplier * LOOP_MULTIPLIER if child is body else multiplier
                    stack.append((child, child_multiplier))
        return GasEstimationReport(fn.name, instructions, memory)

    def estimate(self, tree: SyntaxTree | None) -> list[GasEstimationReport]:
        """Estimate every public method of the file's top-level impl blocks."""
        if tree is None:
            return []
        return [
            self.estimate_function(fn)
            for _, fn in iter_impl_functions(tree)
            if fn.is_pub
        ]

    def estimate_contract(self, source: str) -> list[GasEstimationReport]:
        """Parse ``source`` and estimate it; unparseable source gives ``[]``."""
        return self.estimate(parse_source(source))
