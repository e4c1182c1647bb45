"""Pytest configuration and fixtures for PetWorld tests."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Callable, Generator, Sequence

import numpy as np
import pytest


# =============================================================================
# Test Data
# =============================================================================


MODEL_NUMS = (10, 11)
MODEL_NAMES = ("membrane-state", "bound-state")
CHAIN_ENTITIES = (("A", "1"), ("B", "1"), ("C", "1"), ("D", "2"), ("E", "2"))

MMCIF_HEADER = """data_PETW
#
_entry.id   PETW
#
loop_
_entity.id
_entity.type
_entity.pdbx_description
1 polymer 'Protein one'
2 polymer 'Protein two'
3 water   water
#
loop_
_pdbx_model.id
_pdbx_model.name
1 membrane-state
2 bound-state
#
_pdbx_struct_assembly.id                   1
_pdbx_struct_assembly.details              'representative assembly'
_pdbx_struct_assembly.oligomeric_details   decameric
#
loop_
_pdbx_struct_assembly_gen.assembly_id
_pdbx_struct_assembly_gen.oper_expression
_pdbx_struct_assembly_gen.asym_id_list
_pdbx_struct_assembly_gen.PDB_model_num
1 1     A,B,C,D,E 10
1 '2,3' A,B,C,D,E 11
#
loop_
_pdbx_struct_oper_list.id
_pdbx_struct_oper_list.type
_pdbx_struct_oper_list.name
_pdbx_struct_oper_list.matrix[1][1]
_pdbx_struct_oper_list.matrix[1][2]
_pdbx_struct_oper_list.matrix[1][3]
_pdbx_struct_oper_list.vector[1]
_pdbx_struct_oper_list.matrix[2][1]
_pdbx_struct_oper_list.matrix[2][2]
_pdbx_struct_oper_list.matrix[2][3]
_pdbx_struct_oper_list.vector[2]
_pdbx_struct_oper_list.matrix[3][1]
_pdbx_struct_oper_list.matrix[3][2]
_pdbx_struct_oper_list.matrix[3][3]
_pdbx_struct_oper_list.vector[3]
1 'identity operation'       1_555  1 0 0 0   0  1 0 0  0 0 1 0
2 'point symmetry operation' 2     -1 0 0 0   0 -1 0 0  0 0 1 0
3 'point symmetry operation' 3      1 0 0 10  0  1 0 0  0 0 1 0
#
loop_
_atom_site.group_PDB
_atom_site.id
_atom_site.type_symbol
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_asym_id
_atom_site.label_entity_id
_atom_site.label_seq_id
_atom_site.pdbx_PDB_ins_code
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
_atom_site.occupancy
_atom_site.B_iso_or_equiv
_atom_site.auth_seq_id
_atom_site.auth_asym_id
_atom_site.pdbx_PDB_model_num
"""


def make_multi_model_mmcif() -> str:
    """Two models (10 and 11), each with five one-residue chains and a water.

    Chain ``i`` has N at (i, 0, z) and CA at (i, 1, z), where z is 0 for
    model 10 and 5 for model 11.
    """
    lines = [MMCIF_HEADER.rstrip("\n")]
    serial = 0
    for model_num in MODEL_NUMS:
        z = 0.0 if model_num == 10 else 5.0
        for i, (asym_id, entity_id) in enumerate(CHAIN_ENTITIES):
            for atom_name, element, y in (("N", "N", 0.0), ("CA", "C", 1.0)):
                serial += 1
                lines.append(
                    f"ATOM {serial} {element} {atom_name} . GLY {asym_id} {entity_id} 1 ? "
                    f"{float(i):.3f} {y:.3f} {z:.3f} 1.00 10.00 1 {asym_id} {model_num}"
                )
        serial += 1
        lines.append(
            f"HETATM {serial} O O . HOH W 3 . ? 0.000 0.000 {z + 20.0:.3f} "
            f"1.00 20.00 1 W {model_num}"
        )
    lines.append("#")
    return "\n".join(lines) + "\n"


@pytest.fixture
def multi_model_mmcif_content() -> str:
    """mmCIF text of the two-model, two-generator file."""
    return make_multi_model_mmcif()


@pytest.fixture
def multi_model_mmcif_path(temp_dir: Path, multi_model_mmcif_content: str) -> Path:
    path = temp_dir / "petw.cif"
    path.write_text(multi_model_mmcif_content)
    return path


@pytest.fixture
def scenario_trajectory(multi_model_mmcif_content: str):
    """Trajectory parsed from the two-model file."""
    from petworld.data.parsers.mmcif_parser import MMCIFParser

    return MMCIFParser().parse_trajectory(io.StringIO(multi_model_mmcif_content))


# =============================================================================
# Synthetic Objects
# =============================================================================


@pytest.fixture
def rotation_z_180() -> np.ndarray:
    matrix = np.eye(4)
    matrix[0, 0] = -1.0
    matrix[1, 1] = -1.0
    return matrix


@pytest.fixture
def translation_x_10() -> np.ndarray:
    matrix = np.eye(4)
    matrix[0, 3] = 10.0
    return matrix


@pytest.fixture
def operator_rows(rotation_z_180, translation_x_10):
    """Operator rows: identity at "1", rotation at "2", translation at "3"."""
    from petworld.data.tables import OperatorRow

    return (
        OperatorRow(id="1", matrix=np.eye(4), name="1_555"),
        OperatorRow(id="2", matrix=rotation_z_180),
        OperatorRow(id="3", matrix=translation_x_10),
    )


@pytest.fixture
def make_source(operator_rows):
    """Factory for MmcifSource objects with a single assembly "1"."""
    from petworld.data.parsers.structure import Entity, EntityTable
    from petworld.data.tables import AssemblyGenRow, AssemblyRow, MmcifSource

    def _make_source(
        expressions: Sequence[str] = ("1", "2,3"),
        model_nums: Sequence[int] = (10, 11),
        operators=None,
        model_names: Sequence[str] = (),
    ) -> MmcifSource:
        return MmcifSource(
            entry_id="SYNTH",
            assemblies=(AssemblyRow(id="1", details="synthetic"),),
            generators=tuple(
                AssemblyGenRow(assembly_id="1", oper_expression=expr, asym_ids=("A",))
                for expr in expressions
            ),
            generator_model_nums=tuple(model_nums),
            operators=operator_rows if operators is None else tuple(operators),
            entities=EntityTable((Entity(id="1", type="polymer", description="chain"),)),
            model_names=tuple(model_names),
        )

    return _make_source


@pytest.fixture
def make_model() -> Callable:
    """Factory for models with ``num_chains`` one-atom chains of entity "1"."""
    from petworld.data.parsers.structure import Atom, Chain, Model, Residue

    def _make_model(source=None, num_chains: int = 5, model_num: int = 1, index: int = 0):
        chains = {}
        for i in range(num_chains):
            asym_id = chr(ord("A") + i)
            atom = Atom(name="CA", element="C", coords=np.array([float(i), 1.0, 0.0]))
            chains[asym_id] = Chain(
                asym_id=asym_id,
                entity_id="1",
                residues=[Residue(name="GLY", seq_id=1, atoms={"CA": atom})],
            )
        return Model(
            label="SYNTH",
            model_num=model_num,
            entities=source.entities if source is not None else _empty_entities(),
            chains=chains,
            source=source,
            index=index,
        )

    return _make_model


def _empty_entities():
    from petworld.data.parsers.structure import EntityTable

    return EntityTable()


@pytest.fixture
def make_trajectory(make_model) -> Callable:
    """Factory for in-memory trajectories with one model per model number."""
    from petworld.data.trajectory import Trajectory

    def _make_trajectory(source=None, model_nums: Sequence[int] = (10, 11), num_chains: int = 5):
        models = [
            make_model(source, num_chains=num_chains, model_num=num, index=i)
            for i, num in enumerate(model_nums)
        ]
        return Trajectory.from_models(models, source=source, label="SYNTH")

    return _make_trajectory


@pytest.fixture
def assembly_cache():
    """A fresh assembly cache, isolated from the process-wide one."""
    from petworld.assembly.cache import AssemblyCache

    return AssemblyCache()


# =============================================================================
# Temporary Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Pytest Configuration
# =============================================================================


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests that parse and write whole files"
    )
