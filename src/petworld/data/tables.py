"""Typed access to mmCIF categories.

The tokenizer in :mod:`petworld.data.parsers.mmcif_parser` produces raw
string columns. This module validates those columns once, at load time, and
turns the assembly-related categories into frozen row dataclasses so that
downstream code never has to re-check shapes:

- ``pdbx_struct_assembly``      -> :class:`AssemblyRow`
- ``pdbx_struct_assembly_gen``  -> :class:`AssemblyGenRow` (+ model numbers)
- ``pdbx_struct_oper_list``     -> :class:`OperatorRow`
- ``entity``                    -> :class:`~petworld.data.parsers.structure.Entity`
- ``pdbx_model``                -> model display names
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from petworld.data.parsers.structure import Entity, EntityTable
from petworld.exceptions import MalformedOperatorRecord, MalformedTable


logger = logging.getLogger(__name__)

DEFAULT_MODEL_NUM = 1

# Field names of the 3x4 operator block, row-major, translation last
OPERATOR_MATRIX_FIELDS: Tuple[Tuple[str, ...], ...] = tuple(
    tuple(f"matrix[{i}][{j}]" for j in range(1, 4)) + (f"vector[{i}]",)
    for i in range(1, 4)
)


@dataclass
class CifCategory:
    """A single mmCIF category stored as columns of raw strings.

    Missing ('.') and unknown ('?') values are stored as empty strings.
    """
    name: str
    columns: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def row_count(self) -> int:
        if not self.columns:
            return 0
        return len(next(iter(self.columns.values())))

    def has_field(self, name: str) -> bool:
        return name in self.columns

    def require(self, *names: str) -> None:
        """Raise MalformedTable unless every field in ``names`` is present."""
        missing = [n for n in names if n not in self.columns]
        if missing:
            raise MalformedTable(
                f"Category '{self.name}' is missing required field(s): {', '.join(missing)}"
            )

    def get_str(self, name: str, row: int, default: str = "") -> str:
        column = self.columns.get(name)
        if column is None or row >= len(column):
            return default
        return column[row] or default

    def get_int(self, name: str, row: int, default: Optional[int] = None) -> Optional[int]:
        value = self.get_str(name, row)
        if not value:
            return default
        try:
            return int(value)
        except ValueError as exc:
            raise MalformedTable(
                f"{self.name}.{name} row {row}: expected an integer, got {value!r}"
            ) from exc

    def get_float(self, name: str, row: int, default: Optional[float] = None) -> Optional[float]:
        value = self.get_str(name, row)
        if not value:
            return default
        try:
            return float(value)
        except ValueError as exc:
            raise MalformedTable(
                f"{self.name}.{name} row {row}: expected a number, got {value!r}"
            ) from exc


@dataclass
class CifBlock:
    """One ``data_`` block: its header and categories keyed by name (no leading underscore)."""
    header: str
    categories: Dict[str, CifCategory] = field(default_factory=dict)

    def get(self, name: str) -> Optional[CifCategory]:
        return self.categories.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self.categories


@dataclass(frozen=True)
class AssemblyRow:
    """One row of pdbx_struct_assembly."""
    id: str
    details: str = ""


@dataclass(frozen=True)
class AssemblyGenRow:
    """One row of pdbx_struct_assembly_gen.

    Attributes:
        assembly_id: Assembly this generator belongs to
        oper_expression: Operator expression, e.g. "(1-60)"
        asym_ids: label_asym_ids the operators are meant to duplicate
    """
    assembly_id: str
    oper_expression: str
    asym_ids: Tuple[str, ...] = ()


@dataclass(frozen=True)
class OperatorRow:
    """One row of pdbx_struct_oper_list with its 4x4 homogeneous matrix."""
    id: str
    matrix: np.ndarray = field(default_factory=lambda: np.eye(4), compare=False)
    name: str = ""
    type: str = ""

    def __post_init__(self):
        matrix = np.asarray(self.matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise MalformedOperatorRecord(
                f"Operator '{self.id}' matrix must be 4x4, got {matrix.shape}"
            )
        object.__setattr__(self, "matrix", matrix)


def read_assembly_rows(category: Optional[CifCategory]) -> Tuple[AssemblyRow, ...]:
    if category is None:
        return ()
    category.require("id")
    return tuple(
        AssemblyRow(id=category.get_str("id", i), details=category.get_str("details", i))
        for i in range(category.row_count)
    )


def split_asym_ids(value: str) -> Tuple[str, ...]:
    return tuple(a.strip() for a in value.split(",") if a.strip())


def read_assembly_gen_rows(
    category: Optional[CifCategory],
) -> Tuple[Tuple[AssemblyGenRow, ...], Tuple[int, ...]]:
    """Read generator rows and the aligned ``PDB_model_num`` column.

    Model numbers default to 1 when the column is absent (single-model files).
    """
    if category is None:
        return (), ()
    category.require("assembly_id", "oper_expression", "asym_id_list")

    rows = []
    model_nums = []
    has_model_num = category.has_field("PDB_model_num")
    if not has_model_num and category.row_count:
        logger.debug("pdbx_struct_assembly_gen has no PDB_model_num column, using model 1")

    for i in range(category.row_count):
        rows.append(AssemblyGenRow(
            assembly_id=category.get_str("assembly_id", i),
            oper_expression=category.get_str("oper_expression", i),
            asym_ids=split_asym_ids(category.get_str("asym_id_list", i)),
        ))
        model_num = category.get_int("PDB_model_num", i) if has_model_num else None
        model_nums.append(DEFAULT_MODEL_NUM if model_num is None else model_num)

    return tuple(rows), tuple(model_nums)


def read_operator_rows(category: Optional[CifCategory]) -> Tuple[OperatorRow, ...]:
    """Read pdbx_struct_oper_list into rows with 4x4 matrices."""
    if category is None:
        return ()
    missing = [f for row in OPERATOR_MATRIX_FIELDS for f in row if not category.has_field(f)]
    if not category.has_field("id") or missing:
        raise MalformedOperatorRecord(
            "pdbx_struct_oper_list is missing field(s): "
            + ", ".join((["id"] if not category.has_field("id") else []) + missing)
        )

    rows = []
    for i in range(category.row_count):
        oper_id = category.get_str("id", i)
        matrix = np.eye(4, dtype=np.float64)
        for r, names in enumerate(OPERATOR_MATRIX_FIELDS):
            for c, name in enumerate(names):
                value = category.get_str(name, i)
                try:
                    matrix[r, c] = float(value)
                except ValueError as exc:
                    raise MalformedOperatorRecord(
                        f"Operator '{oper_id}' has a non-numeric {name}: {value!r}"
                    ) from exc
        rows.append(OperatorRow(
            id=oper_id,
            matrix=matrix,
            name=category.get_str("name", i),
            type=category.get_str("type", i),
        ))
    return tuple(rows)


def read_entity_table(
    category: Optional[CifCategory],
    fallback_ids: Iterable[str] = (),
) -> EntityTable:
    """Read the entity category, or synthesize rows from ``fallback_ids``."""
    if category is None:
        return EntityTable(tuple(Entity(id=e) for e in dict.fromkeys(fallback_ids)))
    category.require("id")
    return EntityTable(tuple(
        Entity(
            id=category.get_str("id", i),
            type=category.get_str("type", i),
            description=category.get_str("pdbx_description", i),
        )
        for i in range(category.row_count)
    ))


def read_model_names(category: Optional[CifCategory]) -> Tuple[str, ...]:
    if category is None or not category.has_field("name"):
        return ()
    return tuple(category.get_str("name", i) for i in range(category.row_count))


@dataclass(frozen=True)
class MmcifSource:
    """Static assembly metadata shared by every frame of a trajectory.

    Attributes:
        entry_id: Data block header / entry id
        assemblies: pdbx_struct_assembly rows
        generators: pdbx_struct_assembly_gen rows
        generator_model_nums: PDB_model_num for each generator row
        operators: pdbx_struct_oper_list rows
        entities: Entity table as read from the file
        model_names: pdbx_model.name, indexed by frame index
    """
    entry_id: str
    assemblies: Tuple[AssemblyRow, ...] = ()
    generators: Tuple[AssemblyGenRow, ...] = ()
    generator_model_nums: Tuple[int, ...] = ()
    operators: Tuple[OperatorRow, ...] = ()
    entities: EntityTable = field(default_factory=EntityTable)
    model_names: Tuple[str, ...] = ()

    def __post_init__(self):
        if len(self.generator_model_nums) != len(self.generators):
            raise MalformedTable(
                f"{len(self.generators)} generator rows but "
                f"{len(self.generator_model_nums)} model numbers"
            )

    def model_name(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.model_names) and self.model_names[index]:
            return self.model_names[index]
        return None

    @classmethod
    def from_block(
        cls,
        block: CifBlock,
        fallback_entity_ids: Sequence[str] = (),
    ) -> "MmcifSource":
        generators, model_nums = read_assembly_gen_rows(block.get("pdbx_struct_assembly_gen"))
        return cls(
            entry_id=block.header,
            assemblies=read_assembly_rows(block.get("pdbx_struct_assembly")),
            generators=generators,
            generator_model_nums=model_nums,
            operators=read_operator_rows(block.get("pdbx_struct_oper_list")),
            entities=read_entity_table(block.get("entity"), fallback_entity_ids),
            model_names=read_model_names(block.get("pdbx_model")),
        )


__all__ = [
    "CifCategory",
    "CifBlock",
    "AssemblyRow",
    "AssemblyGenRow",
    "OperatorRow",
    "MmcifSource",
    "OPERATOR_MATRIX_FIELDS",
    "read_assembly_rows",
    "read_assembly_gen_rows",
    "read_operator_rows",
    "read_entity_table",
    "read_model_names",
    "split_asym_ids",
]
