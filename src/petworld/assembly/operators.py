"""Symmetry operators and the operator matrix table.

Operators are stored as 4x4 homogeneous matrices. A point is transformed as
x' = R @ x + t, where R is the upper-left 3x3 block and t the last column.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from petworld.data.tables import OperatorRow
from petworld.exceptions import InvalidExpression, MalformedOperatorRecord


logger = logging.getLogger(__name__)

IDENTITY_NAME = "1_555"

# Tolerance for floating point comparisons
ROTATION_TOLERANCE = 1e-6
TRANSLATION_TOLERANCE = 1e-4

Matrices = Dict[str, np.ndarray]


@dataclass(frozen=True)
class SymmetryOperator:
    """A named placement of a unit.

    Attributes:
        name: Unique name within a structure, e.g. "ASM_3"
        matrix: 4x4 homogeneous transform
        assembly_id: Assembly the operator was generated for, if any
        oper_id: 1-based running index within the assembly
        oper_list: Operator ids composed into this operator, left to right
    """
    name: str
    matrix: np.ndarray = field(default_factory=lambda: np.eye(4), compare=False)
    assembly_id: Optional[str] = None
    oper_id: int = 0
    oper_list: Tuple[str, ...] = ()

    def __post_init__(self):
        matrix = np.asarray(self.matrix, dtype=np.float64)
        assert matrix.shape == (4, 4), f"Matrix must be (4, 4), got {matrix.shape}"
        object.__setattr__(self, "matrix", matrix)

    @property
    def rotation(self) -> np.ndarray:
        return self.matrix[:3, :3]

    @property
    def translation(self) -> np.ndarray:
        return self.matrix[:3, 3]

    @property
    def is_identity(self) -> bool:
        """Check if this is an identity operation."""
        return (
            np.allclose(self.rotation, np.eye(3), atol=ROTATION_TOLERANCE) and
            np.allclose(self.translation, np.zeros(3), atol=TRANSLATION_TOLERANCE)
        )

    def apply(self, points: np.ndarray) -> np.ndarray:
        """Apply transformation to multiple 3D points.

        Args:
            points: Array of shape (N, 3)

        Returns:
            Transformed points of shape (N, 3)
        """
        points = np.asarray(points)
        if points.size == 0:
            return points.reshape(0, 3)
        return (self.rotation @ points.T).T + self.translation

    @classmethod
    def identity(cls, name: str = IDENTITY_NAME) -> "SymmetryOperator":
        """Create identity operation."""
        return cls(name=name, matrix=np.eye(4, dtype=np.float64))


def build_matrix_table(rows: Iterable[OperatorRow]) -> Matrices:
    """Map operator ids to their 4x4 matrices.

    Raises:
        MalformedOperatorRecord: An id is empty or appears twice
    """
    matrices: Matrices = {}
    for i, row in enumerate(rows):
        if not row.id:
            raise MalformedOperatorRecord(f"Operator record {i} has an empty id")
        if row.id in matrices:
            raise MalformedOperatorRecord(f"Duplicate operator id '{row.id}'")
        matrices[row.id] = row.matrix
    return matrices


def compose_matrices(oper_list: Sequence[str], matrices: Matrices) -> np.ndarray:
    """Compose the matrices of ``oper_list`` as M[0] @ M[1] @ ... (rightmost first).

    Raises:
        InvalidExpression: An operator id is not in the table
    """
    result = np.eye(4, dtype=np.float64)
    for oper_id in oper_list:
        matrix = matrices.get(oper_id)
        if matrix is None:
            raise InvalidExpression(f"Unknown operator id '{oper_id}'")
        result = result @ matrix
    return result


__all__ = [
    "SymmetryOperator",
    "Matrices",
    "IDENTITY_NAME",
    "build_matrix_table",
    "compose_matrices",
]
