"""Assembly definitions grouped by model.

In a multi-model PetWorld file every pdbx_struct_assembly_gen row belongs to
one model (its PDB_model_num). An assembly therefore carries one operator
group per contributing generator row, in row order, and the group at index
``i`` is the one applied to the ``i``-th model of the trajectory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from petworld.assembly.expression import OperatorTuple, parse_operator_expression
from petworld.assembly.operators import Matrices, SymmetryOperator, compose_matrices
from petworld.data.tables import AssemblyGenRow, AssemblyRow
from petworld.exceptions import InvalidExpression, MalformedTable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperatorGroup:
    """Operators generated by one generator row.

    Attributes:
        operators: Resolved operators, in expression order
        asym_ids: Units the generator row targets
        expression: The source operator expression
    """
    operators: Tuple[SymmetryOperator, ...]
    asym_ids: Tuple[str, ...] = ()
    expression: str = ""

    def __len__(self) -> int:
        return len(self.operators)

    @property
    def operator_ids(self) -> Tuple[OperatorTuple, ...]:
        """Operator-id tuples of the group, e.g. (("1",), ("2",))."""
        return tuple(op.oper_list for op in self.operators)


@dataclass(frozen=True)
class AssemblyDefinition:
    """Definition of a biological assembly across the models of a trajectory.

    Attributes:
        id: Assembly identifier (e.g., "1")
        details: Description from pdbx_struct_assembly.details
        operator_groups: One group per contributing generator row
    """
    id: str
    details: str
    operator_groups: Tuple[OperatorGroup, ...]

    @property
    def num_operators(self) -> int:
        return sum(len(g) for g in self.operator_groups)

    def get_operator_group(self, model_index: int) -> Optional[OperatorGroup]:
        if 0 <= model_index < len(self.operator_groups):
            return self.operator_groups[model_index]
        return None


@dataclass(frozen=True)
class ModelsAssembly:
    """An assembly paired with the model numbers of its generator rows."""
    assembly: AssemblyDefinition
    model_nums: Tuple[int, ...]

    @property
    def id(self) -> str:
        return self.assembly.id

    def index_of_model(self, model_num: int) -> Optional[int]:
        """Model index whose operator group was generated for ``model_num``."""
        try:
            return self.model_nums.index(model_num)
        except ValueError:
            return None


def create_operator_group(
    generator: AssemblyGenRow,
    matrices: Matrices,
    start_index: int,
) -> OperatorGroup:
    """Resolve one generator row into an operator group.

    Operators are named ``ASM_<n>`` where ``n`` continues from ``start_index``.
    """
    operators = []
    index = start_index
    for oper_list in parse_operator_expression(generator.oper_expression):
        try:
            matrix = compose_matrices(oper_list, matrices)
        except InvalidExpression as exc:
            raise InvalidExpression(
                f"{exc} in expression {generator.oper_expression!r} "
                f"of assembly '{generator.assembly_id}'",
                expression=generator.oper_expression,
            ) from exc
        index += 1
        operators.append(SymmetryOperator(
            name=f"ASM_{index}",
            matrix=matrix,
            assembly_id=generator.assembly_id,
            oper_id=index,
            oper_list=oper_list,
        ))
    return OperatorGroup(
        operators=tuple(operators),
        asym_ids=generator.asym_ids,
        expression=generator.oper_expression,
    )


def create_models_assembly(
    assembly: AssemblyRow,
    generators: Sequence[AssemblyGenRow],
    matrices: Matrices,
    model_nums: Sequence[int],
) -> Optional[ModelsAssembly]:
    """Build the models assembly for one pdbx_struct_assembly row.

    Returns None when no generator row targets the assembly.
    """
    groups = []
    nums = []
    offset = 0
    for generator, model_num in zip(generators, model_nums):
        if generator.assembly_id != assembly.id:
            continue
        group = create_operator_group(generator, matrices, offset)
        offset += len(group)
        groups.append(group)
        nums.append(model_num)

    if not groups:
        logger.debug(f"Assembly '{assembly.id}' has no generator rows, skipping")
        return None

    return ModelsAssembly(
        assembly=AssemblyDefinition(
            id=assembly.id,
            details=assembly.details,
            operator_groups=tuple(groups),
        ),
        model_nums=tuple(nums),
    )


def build_models_assemblies(
    assemblies: Sequence[AssemblyRow],
    generators: Sequence[AssemblyGenRow],
    matrices: Matrices,
    model_nums: Sequence[int],
) -> Tuple[ModelsAssembly, ...]:
    """Build every models assembly, in pdbx_struct_assembly row order.

    Args:
        assemblies: pdbx_struct_assembly rows
        generators: pdbx_struct_assembly_gen rows
        matrices: Operator matrix table
        model_nums: PDB_model_num of each generator row

    Raises:
        InvalidExpression: A generator expression cannot be parsed or resolved
        MalformedTable: ``model_nums`` is not aligned with ``generators``
    """
    if not assemblies:
        return ()
    if len(model_nums) != len(generators):
        raise MalformedTable(
            f"{len(generators)} generator rows but {len(model_nums)} model numbers"
        )

    result = []
    seen = set()
    for row in assemblies:
        if row.id in seen:
            logger.warning(f"Duplicate assembly id '{row.id}', keeping the first row")
            continue
        seen.add(row.id)
        models_assembly = create_models_assembly(row, generators, matrices, model_nums)
        if models_assembly is not None:
            result.append(models_assembly)
    return tuple(result)


__all__ = [
    "OperatorGroup",
    "AssemblyDefinition",
    "ModelsAssembly",
    "create_operator_group",
    "create_models_assembly",
    "build_models_assemblies",
]
