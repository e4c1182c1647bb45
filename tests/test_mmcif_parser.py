"""Tests for multi-model mmCIF parsing."""

import gzip
import io

import numpy as np
import pytest


class TestMMCIFParser:
    """Tests for MMCIFParser."""

    def test_parse_trajectory(self, multi_model_mmcif_path):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        trajectory = MMCIFParser().parse_trajectory(str(multi_model_mmcif_path))

        assert trajectory.label == "PETW"
        assert trajectory.frame_count == 2
        assert not trajectory.is_loaded(0)

        model = trajectory.get_frame(1)
        assert model.model_num == 11
        assert model.index == 1
        assert list(model.chains) == ["A", "B", "C", "D", "E"]
        assert trajectory.is_loaded(1)

    def test_atom_coordinates(self, scenario_trajectory):
        model = scenario_trajectory.get_frame(1)
        ca = model.chains["C"].residues[0].atoms["CA"]
        np.testing.assert_array_almost_equal(ca.coords, [2.0, 1.0, 5.0], decimal=3)
        assert model.chains["D"].entity_id == "2"

    def test_gzip_input(self, temp_dir, multi_model_mmcif_content):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        path = temp_dir / "petw.cif.gz"
        with gzip.open(path, "wt") as f:
            f.write(multi_model_mmcif_content)

        trajectory = MMCIFParser().parse_trajectory(path)
        assert trajectory.frame_count == 2

    def test_keep_waters(self, multi_model_mmcif_content):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        parser = MMCIFParser(remove_waters=False)
        model = parser.parse_trajectory(io.StringIO(multi_model_mmcif_content)).get_frame(0)
        assert "W" in model.chains
        assert model.chains["W"].residues[0].seq_id == 1

    def test_source_tables(self, scenario_trajectory):
        source = scenario_trajectory.source

        assert source.entry_id == "PETW"
        assert [a.id for a in source.assemblies] == ["1"]
        assert source.assemblies[0].details == "representative assembly"
        assert [g.oper_expression for g in source.generators] == ["1", "2,3"]
        assert source.generators[0].asym_ids == ("A", "B", "C", "D", "E")
        assert source.generator_model_nums == (10, 11)
        assert [o.id for o in source.operators] == ["1", "2", "3"]
        assert source.operators[0].name == "1_555"
        assert source.model_names == ("membrane-state", "bound-state")
        assert source.entities.get("1").description == "Protein one"

    def test_missing_model_num_column(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        content = """data_ONE
loop_
_pdbx_struct_assembly_gen.assembly_id
_pdbx_struct_assembly_gen.oper_expression
_pdbx_struct_assembly_gen.asym_id_list
1 1 A
loop_
_atom_site.label_asym_id
_atom_site.label_atom_id
_atom_site.label_comp_id
_atom_site.label_seq_id
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
A CA GLY 1 0.0 0.0 0.0
"""
        trajectory = MMCIFParser().parse_trajectory(io.StringIO(content))
        assert trajectory.frame_count == 1
        assert trajectory.source.generator_model_nums == (1,)
        assert trajectory.get_frame(0).model_num == 1

    def test_alt_loc_highest_occupancy(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        content = """data_ALT
loop_
_atom_site.label_asym_id
_atom_site.label_atom_id
_atom_site.label_alt_id
_atom_site.label_comp_id
_atom_site.label_seq_id
_atom_site.occupancy
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
A CA A SER 1 0.40 1.0 0.0 0.0
A CA B SER 1 0.60 2.0 0.0 0.0
"""
        model = MMCIFParser().parse_trajectory(io.StringIO(content)).get_frame(0)
        atom = model.chains["A"].residues[0].atoms["CA"]
        assert atom.alt_loc == "B"

        parser = MMCIFParser(alt_loc_policy="first")
        model = parser.parse_trajectory(io.StringIO(content)).get_frame(0)
        assert model.chains["A"].residues[0].atoms["CA"].alt_loc == "A"

    def test_quoted_and_text_field_values(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser

        content = """data_TXT
_pdbx_struct_assembly.id 1
_pdbx_struct_assembly.details
;author defined
assembly
;
loop_
_atom_site.label_asym_id
_atom_site.label_atom_id
_atom_site.label_comp_id
_atom_site.label_seq_id
_atom_site.Cartn_x
_atom_site.Cartn_y
_atom_site.Cartn_z
A "O5'" DA 1 0.0 0.0 0.0
"""
        trajectory = MMCIFParser().parse_trajectory(io.StringIO(content))
        assert trajectory.source.assemblies[0].details == "author defined\nassembly"
        model = trajectory.get_frame(0)
        assert "O5'" in model.chains["A"].residues[0].atoms

    def test_load_trajectory_with_config(self, multi_model_mmcif_path):
        from petworld.config import ParserConfig
        from petworld.data.parsers.mmcif_parser import load_trajectory

        trajectory = load_trajectory(multi_model_mmcif_path, ParserConfig(remove_waters=False))
        assert "W" in trajectory.get_frame(0).chains


class TestMMCIFParserErrors:
    """Schema errors are reported as UnsupportedFormat or MalformedTable."""

    def test_not_mmcif(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import UnsupportedFormat

        with pytest.raises(UnsupportedFormat):
            MMCIFParser().parse_trajectory(io.StringIO("HEADER    PDB FILE\nATOM      1  N\n"))

    def test_missing_atom_site(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import FrameResolutionError, UnsupportedFormat

        with pytest.raises(UnsupportedFormat) as exc_info:
            MMCIFParser().parse_trajectory(io.StringIO("data_X\n_entry.id X\n"))
        assert isinstance(exc_info.value, FrameResolutionError)

    def test_missing_coordinate_column(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import UnsupportedFormat

        content = "data_X\nloop_\n_atom_site.label_asym_id\n_atom_site.Cartn_x\nA 0.0\n"
        with pytest.raises(UnsupportedFormat):
            MMCIFParser().parse_trajectory(io.StringIO(content))

    def test_truncated_loop(self):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import UnsupportedFormat

        content = "data_X\nloop_\n_entity.id\n_entity.type\n1 polymer 2\n"
        with pytest.raises(UnsupportedFormat):
            MMCIFParser().read_categories(io.StringIO(content))

    def test_non_numeric_operator(self, multi_model_mmcif_content):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import MalformedOperatorRecord

        content = multi_model_mmcif_content.replace(
            "3 'point symmetry operation' 3      1 0 0 10",
            "3 'point symmetry operation' 3      1 0 0 ten",
        )
        with pytest.raises(MalformedOperatorRecord):
            MMCIFParser().parse_trajectory(io.StringIO(content))

    def test_bad_residue_number_fails_frame(self, multi_model_mmcif_content):
        from petworld.data.parsers.mmcif_parser import MMCIFParser
        from petworld.exceptions import UnsupportedFormat

        content = multi_model_mmcif_content.replace("GLY A 1 1 ?", "GLY A 1 x ?")
        trajectory = MMCIFParser().parse_trajectory(io.StringIO(content))
        with pytest.raises(UnsupportedFormat) as exc_info:
            trajectory.get_frame(0)
        assert exc_info.value.index == 0
