"""Tests for symmetry operators and the operator matrix table."""

import numpy as np
import pytest


class TestSymmetryOperator:
    """Tests for SymmetryOperator."""

    def test_identity(self):
        from petworld.assembly.operators import IDENTITY_NAME, SymmetryOperator

        op = SymmetryOperator.identity()
        assert op.name == IDENTITY_NAME
        assert op.is_identity

    def test_apply_rotation_and_translation(self, rotation_z_180):
        from petworld.assembly.operators import SymmetryOperator

        matrix = rotation_z_180.copy()
        matrix[:3, 3] = [1.0, 2.0, 3.0]
        op = SymmetryOperator(name="ASM_1", matrix=matrix)

        points = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 1.0]])
        np.testing.assert_allclose(op.apply(points), [[0.0, 2.0, 3.0], [1.0, 1.0, 4.0]])
        assert not op.is_identity

    def test_apply_empty(self):
        from petworld.assembly.operators import SymmetryOperator

        result = SymmetryOperator.identity().apply(np.zeros((0, 3)))
        assert result.shape == (0, 3)

    def test_rejects_bad_shape(self):
        from petworld.assembly.operators import SymmetryOperator

        with pytest.raises(AssertionError):
            SymmetryOperator(name="bad", matrix=np.eye(3))


class TestMatrixTable:
    """Tests for build_matrix_table."""

    def test_build(self, operator_rows, translation_x_10):
        from petworld.assembly.operators import build_matrix_table

        matrices = build_matrix_table(operator_rows)
        assert list(matrices) == ["1", "2", "3"]
        np.testing.assert_allclose(matrices["3"], translation_x_10)

    def test_duplicate_id(self):
        from petworld.assembly.operators import build_matrix_table
        from petworld.data.tables import OperatorRow
        from petworld.exceptions import MalformedOperatorRecord

        rows = [OperatorRow(id="1"), OperatorRow(id="1")]
        with pytest.raises(MalformedOperatorRecord):
            build_matrix_table(rows)

    def test_empty_id(self):
        from petworld.assembly.operators import build_matrix_table
        from petworld.data.tables import OperatorRow
        from petworld.exceptions import MalformedOperatorRecord

        with pytest.raises(MalformedOperatorRecord):
            build_matrix_table([OperatorRow(id="")])

    def test_duplicate_is_a_malformed_table(self):
        from petworld.exceptions import MalformedOperatorRecord, MalformedTable, PetworldError

        assert issubclass(MalformedOperatorRecord, MalformedTable)
        assert issubclass(MalformedTable, PetworldError)


class TestComposeMatrices:
    """Tests for compose_matrices."""

    def test_rightmost_applied_first(self, operator_rows):
        from petworld.assembly.operators import build_matrix_table, compose_matrices

        matrices = build_matrix_table(operator_rows)
        # rotate(translate(p)): (0,0,0) -> (10,0,0) -> (-10,0,0)
        composed = compose_matrices(("2", "3"), matrices)
        point = composed @ np.array([0.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(point[:3], [-10.0, 0.0, 0.0])

        # translate(rotate(p)): (0,0,0) -> (0,0,0) -> (10,0,0)
        composed = compose_matrices(("3", "2"), matrices)
        point = composed @ np.array([0.0, 0.0, 0.0, 1.0])
        np.testing.assert_allclose(point[:3], [10.0, 0.0, 0.0])

    def test_empty_list_is_identity(self):
        from petworld.assembly.operators import compose_matrices

        np.testing.assert_allclose(compose_matrices((), {}), np.eye(4))

    def test_unknown_id(self, operator_rows):
        from petworld.assembly.operators import build_matrix_table, compose_matrices
        from petworld.exceptions import InvalidExpression

        with pytest.raises(InvalidExpression):
            compose_matrices(("1", "99"), build_matrix_table(operator_rows))
