"""Parsing of pdbx_struct_assembly_gen operator expressions.

PDB uses expressions like:
- "1"            - single operator
- "1,2,3"        - list of operators
- "1-5"          - inclusive range of operators
- "(1-5)"        - same as "1-5"
- "(1-3)(4,5)"   - Cartesian product (combined operators)

Each parenthesized group contributes one position to the resulting operator
tuples, so "(1-3)(4,5)" yields six tuples of arity two. Tuples are ordered
left-group-major: ("1", "4"), ("1", "5"), ("2", "4"), ...

Unknown operator ids are not detected here; they fail when the tuples are
resolved against the operator matrix table.
"""

from __future__ import annotations

import itertools
import re
from typing import List, Tuple

from petworld.exceptions import InvalidExpression


_WHITESPACE = re.compile(r"\s+")

OperatorTuple = Tuple[str, ...]


def _fail(expression: str, reason: str) -> InvalidExpression:
    return InvalidExpression(
        f"Invalid operator expression {expression!r}: {reason}",
        expression=expression,
    )


def split_groups(expression: str) -> List[str]:
    """Split a whitespace-free expression into its group bodies.

    "1,2" -> ["1,2"]; "(1-3)(4)" -> ["1-3", "4"].
    """
    if "(" not in expression and ")" not in expression:
        return [expression]

    groups = []
    pos = 0
    while pos < len(expression):
        if expression[pos] != "(":
            raise _fail(expression, f"unexpected {expression[pos]!r} at position {pos}")
        end = expression.find(")", pos + 1)
        if end < 0:
            raise _fail(expression, "unmatched '('")
        body = expression[pos + 1:end]
        if "(" in body:
            raise _fail(expression, "nested parentheses")
        groups.append(body)
        pos = end + 1
    return groups


def parse_operator_list(body: str, expression: str = "") -> List[str]:
    """Parse one group body ("1,3-5,X0") into operator ids, in textual order."""
    expression = expression or body
    if not body:
        raise _fail(expression, "empty operator group")

    operator_ids: List[str] = []
    for part in body.split(","):
        if not part:
            raise _fail(expression, "empty list item")

        if "-" in part:
            start, sep, end = part.partition("-")
            if not start or not end or "-" in end:
                raise _fail(expression, f"malformed range {part!r}")
            try:
                first, last = int(start), int(end)
            except ValueError:
                raise _fail(expression, f"non-numeric range {part!r}") from None
            if first > last:
                raise _fail(expression, f"descending range {part!r}")
            operator_ids.extend(str(i) for i in range(first, last + 1))
        else:
            operator_ids.append(part)

    return operator_ids


def parse_operator_expression(expression: str) -> List[OperatorTuple]:
    """Parse an operator expression into ordered operator-id tuples.

    Args:
        expression: Operator expression string

    Returns:
        List of operator-id tuples; arity equals the number of groups

    Raises:
        InvalidExpression: The expression is empty or malformed
    """
    compact = _WHITESPACE.sub("", expression or "")
    if not compact:
        raise _fail(expression, "empty expression")

    groups = [parse_operator_list(body, expression) for body in split_groups(compact)]
    return [tuple(combination) for combination in itertools.product(*groups)]


__all__ = [
    "OperatorTuple",
    "parse_operator_expression",
    "parse_operator_list",
    "split_groups",
]
