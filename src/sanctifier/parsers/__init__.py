"""Rust source parsing for Soroban contracts: lexer, syntax tree, traversal."""

from sanctifier.parsers.base import parse_source
from sanctifier.parsers.nodes import SyntaxTree
from sanctifier.parsers.visitor import NodeVisitor, iter_child_nodes, walk

__all__ = [
    "NodeVisitor",
    "SyntaxTree",
    "iter_child_nodes",
    "parse_source",
    "walk",
]
