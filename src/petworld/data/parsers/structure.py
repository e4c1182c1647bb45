"""Core structure data classes for multi-model PetWorld trajectories.

This module provides dataclasses for atoms, residues and chains of a single
model (trajectory frame), the entity table shared by its chains, and the
assembled structure produced by replicating chains under symmetry operators.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Tuple

import numpy as np

if TYPE_CHECKING:
    from petworld.assembly.operators import SymmetryOperator
    from petworld.data.tables import MmcifSource


WATER_RESIDUE_NAMES = {"HOH", "WAT", "DOD"}


@dataclass
class Atom:
    """Represents a single atom in a model.

    Attributes:
        name: Atom name (e.g., 'CA', 'N', 'C1')
        element: Element symbol (e.g., 'C', 'N', 'O')
        coords: 3D coordinates in Angstroms
        occupancy: Occupancy factor (0-1)
        b_factor: Temperature factor
        charge: Formal charge
        is_hetero: Whether this is a HETATM
        alt_loc: Alternative location indicator
        serial: Atom serial number
    """
    name: str
    element: str
    coords: np.ndarray  # Shape (3,)
    occupancy: float = 1.0
    b_factor: float = 0.0
    charge: int = 0
    is_hetero: bool = False
    alt_loc: str = ""
    serial: int = 0

    def __post_init__(self):
        if not isinstance(self.coords, np.ndarray):
            self.coords = np.array(self.coords, dtype=np.float32)
        assert self.coords.shape == (3,), f"Coords must be shape (3,), got {self.coords.shape}"

    @property
    def is_hydrogen(self) -> bool:
        """Check if this is a hydrogen atom."""
        return self.element.upper() in ("H", "D")


@dataclass
class Residue:
    """Represents a residue (amino acid, nucleotide, or ligand).

    Attributes:
        name: Residue name (3-letter code, e.g., 'ALA', 'DA')
        seq_id: Sequence position (label_seq_id, or auth_seq_id for ligands)
        atoms: Dictionary of atom name to Atom
        insertion_code: PDB insertion code
    """
    name: str
    seq_id: int
    atoms: Dict[str, Atom] = field(default_factory=dict)
    insertion_code: str = ""

    @property
    def num_atoms(self) -> int:
        """Number of atoms in this residue."""
        return len(self.atoms)

    @property
    def is_water(self) -> bool:
        return self.name in WATER_RESIDUE_NAMES


@dataclass
class Chain:
    """Represents one structural unit of a model.

    Chains are keyed by their label_asym_id, which is the identifier used by
    the assembly generator table to target units.

    Attributes:
        asym_id: label_asym_id of the chain
        entity_id: label_entity_id shared by all residues of the chain
        residues: List of residues in file order
        auth_asym_id: Author chain identifier
    """
    asym_id: str
    entity_id: str = ""
    residues: List[Residue] = field(default_factory=list)
    auth_asym_id: str = ""

    @property
    def num_residues(self) -> int:
        """Number of residues in chain."""
        return len(self.residues)

    @property
    def num_atoms(self) -> int:
        """Total number of atoms in chain."""
        return sum(res.num_atoms for res in self.residues)

    def iter_atoms(self) -> Iterable[Tuple[Residue, Atom]]:
        for res in self.residues:
            for atom in res.atoms.values():
                yield res, atom

    def get_coords(self) -> np.ndarray:
        """Get all atom coordinates as Nx3 array."""
        coords = [atom.coords for _, atom in self.iter_atoms()]
        if coords:
            return np.stack(coords)
        return np.zeros((0, 3), dtype=np.float32)


@dataclass(frozen=True)
class Entity:
    """One row of the entity table."""
    id: str
    type: str = ""
    description: str = ""


@dataclass(frozen=True)
class EntityTable:
    """Immutable entity table of a model.

    Relabelling produces a new table; tables are shared between all frames of
    a trajectory and must never be edited in place.
    """
    entities: Tuple[Entity, ...] = ()

    def __len__(self) -> int:
        return len(self.entities)

    def get_entity_index(self, entity_id: str) -> int:
        """Return the row index of an entity, or -1 if it is not defined."""
        for i, entity in enumerate(self.entities):
            if entity.id == entity_id:
                return i
        return -1

    def get(self, entity_id: str) -> Optional[Entity]:
        idx = self.get_entity_index(entity_id)
        return self.entities[idx] if idx >= 0 else None

    def with_description(self, entity_ids: Iterable[str], description: str) -> "EntityTable":
        """Return a copy where every entity in ``entity_ids`` gets ``description``.

        Every row matching a given id is relabelled, so duplicated ids are all
        updated. Ids without a row are ignored.
        """
        targets = set(entity_ids)
        if not targets:
            return self
        return EntityTable(tuple(
            replace(entity, description=description) if entity.id in targets else entity
            for entity in self.entities
        ))


@dataclass(frozen=True)
class Model:
    """A single frame of a trajectory.

    Attributes:
        label: Display label of the model
        model_num: pdbx_PDB_model_num of the frame
        entities: Entity table (shared with the other frames until relabelled)
        chains: Chains keyed by label_asym_id, in file order
        source: Static mmCIF metadata of the trajectory, None for other formats
        index: Zero-based frame index within the trajectory
    """
    label: str
    model_num: int
    entities: EntityTable = field(default_factory=EntityTable)
    chains: Dict[str, Chain] = field(default_factory=dict)
    source: Optional["MmcifSource"] = None
    index: int = 0

    @property
    def num_chains(self) -> int:
        return len(self.chains)

    @property
    def num_atoms(self) -> int:
        return sum(chain.num_atoms for chain in self.chains.values())

    def referenced_entity_ids(self) -> List[str]:
        """Entity ids referenced by the chains of this model, in chain order."""
        seen: Dict[str, None] = {}
        for chain in self.chains.values():
            if chain.entity_id:
                seen.setdefault(chain.entity_id, None)
        return list(seen)


@dataclass
class Unit:
    """A chain instance placed by a symmetry operator.

    The underlying chain is shared with the base model; coordinates are
    transformed on access.
    """
    chain: Chain
    operator: "SymmetryOperator"

    @property
    def asym_id(self) -> str:
        return self.chain.asym_id

    @property
    def entity_id(self) -> str:
        return self.chain.entity_id

    @property
    def num_atoms(self) -> int:
        return self.chain.num_atoms

    @property
    def is_identity(self) -> bool:
        return self.operator.is_identity

    def get_coords(self) -> np.ndarray:
        """Transformed coordinates of all atoms in the unit (Nx3)."""
        return self.operator.apply(self.chain.get_coords())

    def to_chain(self, new_asym_id: Optional[str] = None) -> Chain:
        """Materialize the unit as a standalone chain with transformed atoms."""
        new_residues = []

        for residue in self.chain.residues:
            names = list(residue.atoms)
            if names:
                coords = self.operator.apply(
                    np.stack([residue.atoms[n].coords for n in names])
                ).astype(np.float32)
            new_atoms = {}
            for i, atom_name in enumerate(names):
                atom = residue.atoms[atom_name]
                new_atoms[atom_name] = replace(atom, coords=coords[i])

            new_residues.append(Residue(
                name=residue.name,
                seq_id=residue.seq_id,
                atoms=new_atoms,
                insertion_code=residue.insertion_code,
            ))

        return Chain(
            asym_id=new_asym_id or self.chain.asym_id,
            entity_id=self.chain.entity_id,
            residues=new_residues,
            auth_asym_id=self.chain.auth_asym_id,
        )


@dataclass
class AssembledStructure:
    """Structure built from one model, with every unit tagged by its operator.

    Attributes:
        model: The (relabelled) model the units were taken from
        units: Unit instances in build order
    """
    model: Model
    units: List[Unit] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.model.label

    @property
    def num_units(self) -> int:
        return len(self.units)

    @property
    def num_atoms(self) -> int:
        return sum(unit.num_atoms for unit in self.units)

    @property
    def operator_names(self) -> List[str]:
        """Distinct operator names in build order."""
        seen: Dict[str, None] = {}
        for unit in self.units:
            seen.setdefault(unit.operator.name, None)
        return list(seen)

    def get_units_by_operator(self, name: str) -> List[Unit]:
        return [unit for unit in self.units if unit.operator.name == name]

    def get_coords(self) -> np.ndarray:
        """All transformed coordinates, stacked in unit order."""
        parts = [unit.get_coords() for unit in self.units]
        parts = [p for p in parts if len(p)]
        if parts:
            return np.concatenate(parts, axis=0)
        return np.zeros((0, 3), dtype=np.float32)

    def element_description(self) -> str:
        """Short human-readable summary, e.g. '1,250 atoms in 10 units'."""
        atoms = self.num_atoms
        units = self.num_units
        return (
            f"{atoms:,} atom{'s' if atoms != 1 else ''} in "
            f"{units:,} unit{'s' if units != 1 else ''}"
        )


def build_base_units(model: Model, operator: "SymmetryOperator") -> List[Unit]:
    """One unit per chain of ``model``, all placed by ``operator``."""
    return [Unit(chain=chain, operator=operator) for chain in model.chains.values()]
