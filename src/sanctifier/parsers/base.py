"""Parser adapter: source text in, ``SyntaxTree`` or ``None`` out.

Every detector, the gas estimator and the call-graph extractor consume the
tree returned by ``parse_source``. Malformed input never raises here: a
lexing or parsing failure yields ``None``, and every consumer treats
``None`` exactly like a tree with no relevant nodes. This is what lets a
multi-file scan tolerate syntax errors in sibling files.
"""

from __future__ import annotations

import logging

from sanctifier.exceptions import ParseError
from sanctifier.parsers.nodes import SyntaxTree
from sanctifier.parsers.rust import parse_rust

logger = logging.getLogger(__name__)


def parse_source(text: str) -> SyntaxTree | None:
    """Parse contract source, returning ``None`` on any syntax error.

    Args:
        text: Rust source text of one file.

    Returns:
        The immutable syntax tree, or ``None`` when the text does not parse.
    """
    try:
        return parse_rust(text)
    except ParseError as exc:
        logger.debug("Source did not parse: %s", exc)
    except RecursionError:
        logger.debug("Source nesting exceeded the interpreter stack")
    return None
