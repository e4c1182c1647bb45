"""Writing assembled structures as mmCIF.

Only the categories needed to view an assembled frame are written: the
entity table (with the descriptions of the built model) and one _atom_site
loop holding the transformed coordinates of every unit.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Set, TextIO, Union

from petworld.data.parsers.structure import AssembledStructure, Unit
from petworld.utils import atomic_write

if TYPE_CHECKING:
    from petworld.data.parsers.structure import EntityTable


logger = logging.getLogger(__name__)

ATOM_SITE_FIELDS = (
    "group_PDB",
    "id",
    "type_symbol",
    "label_atom_id",
    "label_alt_id",
    "label_comp_id",
    "label_asym_id",
    "label_entity_id",
    "label_seq_id",
    "pdbx_PDB_ins_code",
    "Cartn_x",
    "Cartn_y",
    "Cartn_z",
    "occupancy",
    "B_iso_or_equiv",
    "pdbx_formal_charge",
    "auth_asym_id",
    "pdbx_PDB_model_num",
)


_RESERVED_PREFIXES = ("data_", "save_")
_RESERVED_WORDS = ("loop_", "global_", "stop_")


def _is_reserved(value: str) -> bool:
    lowered = value.lower()
    return lowered.startswith(_RESERVED_PREFIXES) or lowered in _RESERVED_WORDS


def format_value(value: str) -> str:
    """Quote a value for mmCIF output; empty values become '?'.

    Values spanning lines, or holding both quote characters, are written as
    ';'-delimited text fields, which start on a line of their own.
    """
    if value == "":
        return "?"
    if "\n" in value or ("'" in value and '"' in value):
        return f"\n;{value}\n;\n"
    if (
        value[0] in "_#$'\";[]"
        or any(c.isspace() for c in value)
        or value in (".", "?")
        or _is_reserved(value)
    ):
        if "'" not in value:
            return f"'{value}'"
        return f'"{value}"'
    return value


def assign_chain_ids(units: List[Unit], separator: str = "_") -> List[str]:
    """Output chain id of every unit.

    The first identity-placed copy of a chain keeps its asym id; every other
    copy is named ``<asym_id><separator><operator name>``. A name already
    taken, e.g. by a chain whose asym id looks like a generated one, gets a
    counter appended.
    """
    kept: Dict[str, int] = {}
    for index, unit in enumerate(units):
        if unit.is_identity and unit.asym_id not in kept:
            kept[unit.asym_id] = index

    used: Set[str] = set(kept)
    chain_ids = []
    for index, unit in enumerate(units):
        if kept.get(unit.asym_id) == index:
            chain_ids.append(unit.asym_id)
            continue
        base = f"{unit.asym_id}{separator}{unit.operator.name}"
        chain_id = base
        counter = 1
        while chain_id in used:
            counter += 1
            chain_id = f"{base}{separator}{counter}"
        used.add(chain_id)
        chain_ids.append(chain_id)
    return chain_ids


def _entity_lines(entities: "EntityTable") -> Iterator[str]:
    if not len(entities):
        return
    yield "loop_"
    yield "_entity.id"
    yield "_entity.type"
    yield "_entity.pdbx_description"
    for entity in entities.entities:
        yield " ".join(format_value(v) for v in (entity.id, entity.type, entity.description))
    yield "#"


def _atom_site_lines(structure: AssembledStructure, separator: str) -> Iterator[str]:
    yield "loop_"
    for name in ATOM_SITE_FIELDS:
        yield f"_atom_site.{name}"

    serial = 0
    model_num = str(structure.model.model_num)
    chain_ids = assign_chain_ids(structure.units, separator)
    for unit, chain_id in zip(structure.units, chain_ids):
        chain = unit.to_chain(chain_id)
        for residue, atom in chain.iter_atoms():
            serial += 1
            x, y, z = (float(c) for c in atom.coords)
            values = (
                "HETATM" if atom.is_hetero else "ATOM",
                str(serial),
                atom.element,
                atom.name,
                atom.alt_loc or ".",
                residue.name,
                chain_id,
                unit.entity_id,
                str(residue.seq_id),
                residue.insertion_code or ".",
                f"{x:.3f}",
                f"{y:.3f}",
                f"{z:.3f}",
                f"{atom.occupancy:.2f}",
                f"{atom.b_factor:.2f}",
                str(atom.charge),
                chain_id,
                model_num,
            )
            yield " ".join(format_value(v) for v in values)
    yield "#"


def _write(structure: AssembledStructure, f: TextIO, separator: str) -> None:
    header = re.sub(r"\s+", "_", structure.label.strip()) or "assembly"
    f.write(f"data_{header}\n#\n")
    for line in _entity_lines(structure.model.entities):
        f.write(line + "\n")
    for line in _atom_site_lines(structure, separator):
        f.write(line + "\n")


def write_assembled_mmcif(
    structure: AssembledStructure,
    file_or_path: Union[str, Path, TextIO],
    separator: str = "_",
) -> None:
    """Write an assembled structure to mmCIF.

    Args:
        structure: Structure returned by the assembly builder
        file_or_path: Output path (written atomically) or open text file
        separator: Separator between asym id and operator name in chain ids
    """
    if isinstance(file_or_path, (str, Path)):
        with atomic_write(file_or_path) as f:
            _write(structure, f, separator)
        logger.info(f"Wrote {structure.element_description()} to {file_or_path}")
    else:
        _write(structure, file_or_path, separator)


__all__ = ["write_assembled_mmcif", "assign_chain_ids", "format_value", "ATOM_SITE_FIELDS"]
