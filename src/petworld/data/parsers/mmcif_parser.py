"""mmCIF parser for multi-model PetWorld files.

This module turns an mmCIF file into a :class:`~petworld.data.trajectory.Trajectory`:
- Tokenize the first data block into categories of raw columns
- Validate the assembly metadata once into typed tables (shared by all frames)
- Split _atom_site rows by pdbx_PDB_model_num
- Decode each model lazily (chains, residues, atoms, alt-loc cleanup)
"""

from __future__ import annotations

import gzip
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, TextIO, Tuple, Union

import numpy as np

from petworld.data.parsers.structure import Atom, Chain, Model, Residue
from petworld.data.tables import CifBlock, CifCategory, MmcifSource
from petworld.data.trajectory import Trajectory
from petworld.exceptions import MalformedTable, UnsupportedFormat

if TYPE_CHECKING:
    from petworld.config import ParserConfig


logger = logging.getLogger(__name__)

REQUIRED_ATOM_SITE_FIELDS = ("Cartn_x", "Cartn_y", "Cartn_z", "label_asym_id")


@dataclass
class _Token:
    value: str
    quoted: bool = False


class MMCIFParser:
    """Parser for multi-model mmCIF files.

    Only the first data block is read. The assembly categories are validated
    eagerly; atomic data is decoded per frame, on first access.
    """

    def __init__(
        self,
        remove_hydrogens: bool = False,
        remove_waters: bool = True,
        alt_loc_policy: str = "occupancy",
    ):
        """Initialize the parser.

        Args:
            remove_hydrogens: Remove hydrogen atoms while decoding frames
            remove_waters: Remove water residues while decoding frames
            alt_loc_policy: "occupancy" keeps the highest-occupancy alternate
                location of an atom, "first" keeps the first one listed
        """
        self.remove_hydrogens = remove_hydrogens
        self.remove_waters = remove_waters
        self.alt_loc_policy = alt_loc_policy

    @classmethod
    def from_config(cls, config: "ParserConfig") -> "MMCIFParser":
        return cls(
            remove_hydrogens=config.remove_hydrogens,
            remove_waters=config.remove_waters,
            alt_loc_policy=config.alt_loc_policy,
        )

    def parse_trajectory(
        self,
        file_or_path: Union[str, Path, TextIO],
    ) -> Trajectory:
        """Parse an mmCIF file into a lazily decoded trajectory.

        Args:
            file_or_path: Path to mmCIF file (optionally .gz) or file-like object

        Returns:
            Trajectory with one frame per pdbx_PDB_model_num

        Raises:
            UnsupportedFormat: The content is not mmCIF or lacks atom_site fields
        """
        block = self.read_categories(file_or_path)
        return self.trajectory_from_block(block)

    def trajectory_from_block(self, block: CifBlock) -> Trajectory:
        atom_site = block.get("atom_site")
        if atom_site is None:
            raise UnsupportedFormat(f"Data block '{block.header}' has no _atom_site category")
        try:
            atom_site.require(*REQUIRED_ATOM_SITE_FIELDS)
        except MalformedTable as exc:
            raise UnsupportedFormat(str(exc)) from exc

        frames = self._split_models(atom_site)
        entity_ids = atom_site.columns.get("label_entity_id", [])
        try:
            source = MmcifSource.from_block(block, fallback_entity_ids=[e for e in entity_ids if e])
        except MalformedTable:
            logger.error(f"Invalid assembly metadata in '{block.header}'")
            raise

        logger.info(
            f"Parsed '{block.header}': {len(frames)} model(s), "
            f"{len(source.assemblies)} assembly(ies), {len(source.operators)} operator(s)"
        )

        def load(index: int) -> Model:
            model_num, rows = frames[index]
            return self._decode_model(atom_site, rows, model_num, index, source)

        return Trajectory(len(frames), load, source=source, label=block.header)

    def read_categories(self, file_or_path: Union[str, Path, TextIO]) -> CifBlock:
        """Tokenize the first data block into categories.

        Raises:
            UnsupportedFormat: No data block found or a loop is truncated
        """
        content = self._read_file(file_or_path)
        return self._parse_mmcif_data(content)

    def _read_file(self, file_or_path: Union[str, Path, TextIO]) -> str:
        """Read file content from path or file object."""
        if isinstance(file_or_path, (str, Path)):
            path = Path(file_or_path)
            if path.suffix == ".gz":
                with gzip.open(path, "rt") as f:
                    return f.read()
            else:
                with open(path) as f:
                    return f.read()
        else:
            return file_or_path.read()

    def _tokenize(self, content: str) -> Iterator[_Token]:
        """Yield tokens, treating ';' text fields and quoted strings as single values."""
        lines = content.split("\n")
        i = 0
        while i < len(lines):
            line = lines[i]
            if line.startswith(";"):
                text = [line[1:]]
                i += 1
                while i < len(lines) and not lines[i].startswith(";"):
                    text.append(lines[i])
                    i += 1
                if i >= len(lines):
                    raise UnsupportedFormat("Unterminated ';' text field")
                i += 1
                yield _Token("\n".join(text).strip(), quoted=True)
                continue
            yield from self._split_line(line)
            i += 1

    def _split_line(self, line: str) -> Iterator[_Token]:
        """Split a line into tokens, handling quoted strings and comments."""
        pos = 0
        length = len(line)
        while pos < length:
            char = line[pos]
            if char.isspace():
                pos += 1
                continue
            if char == "#":
                return
            if char in "\"'":
                # A quote only closes when followed by whitespace or end of line
                end = pos + 1
                while end < length and not (
                    line[end] == char and (end + 1 == length or line[end + 1].isspace())
                ):
                    end += 1
                if end >= length:
                    raise UnsupportedFormat(f"Unterminated quoted value: {line.strip()!r}")
                yield _Token(line[pos + 1:end], quoted=True)
                pos = end + 1
                continue
            end = pos
            while end < length and not line[end].isspace():
                end += 1
            yield _Token(line[pos:end])
            pos = end

    def _clean_value(self, token: _Token) -> str:
        """Map unquoted '.' and '?' to empty strings."""
        if not token.quoted and token.value in (".", "?"):
            return ""
        return token.value

    def _parse_mmcif_data(self, content: str) -> CifBlock:
        """Parse mmCIF content into a CifBlock of column categories."""
        tokens = list(self._tokenize(content))
        n = len(tokens)
        block: Optional[CifBlock] = None
        pos = 0

        def is_keyword(tok: _Token) -> bool:
            return not tok.quoted and (
                tok.value.startswith("_")
                or tok.value == "loop_"
                or tok.value.startswith("data_")
                or tok.value.startswith("save_")
                or tok.value == "global_"
            )

        while pos < n:
            token = tokens[pos]

            if not token.quoted and token.value.startswith("data_"):
                if block is not None:
                    logger.warning(f"Ignoring data blocks after '{block.header}'")
                    break
                block = CifBlock(header=token.value[5:])
                pos += 1
                continue

            if block is None:
                raise UnsupportedFormat("Content does not start with an mmCIF data block")

            if not token.quoted and token.value == "loop_":
                pos += 1
                fields: List[str] = []
                while pos < n and not tokens[pos].quoted and tokens[pos].value.startswith("_"):
                    fields.append(tokens[pos].value)
                    pos += 1
                values: List[str] = []
                while pos < n and not is_keyword(tokens[pos]):
                    values.append(self._clean_value(tokens[pos]))
                    pos += 1
                if not fields:
                    raise UnsupportedFormat("loop_ without field names")
                if len(values) % len(fields):
                    raise UnsupportedFormat(
                        f"Loop {fields[0].split('.')[0]} has {len(values)} values "
                        f"for {len(fields)} fields"
                    )
                for k, name in enumerate(fields):
                    category, field_name = self._split_field(name)
                    cat = block.categories.setdefault(category, CifCategory(category))
                    cat.columns[field_name] = values[k::len(fields)]
                continue

            if not token.quoted and token.value.startswith("_"):
                if pos + 1 >= n or is_keyword(tokens[pos + 1]):
                    raise UnsupportedFormat(f"Missing value for {token.value}")
                category, field_name = self._split_field(token.value)
                cat = block.categories.setdefault(category, CifCategory(category))
                cat.columns[field_name] = [self._clean_value(tokens[pos + 1])]
                pos += 2
                continue

            # save frames and stray values carry nothing we use
            logger.debug(f"Skipping token {token.value!r}")
            pos += 1

        if block is None:
            raise UnsupportedFormat("No mmCIF data block found")
        return block

    @staticmethod
    def _split_field(name: str) -> Tuple[str, str]:
        category, sep, field_name = name[1:].partition(".")
        if not sep or not field_name:
            raise UnsupportedFormat(f"Malformed item name: {name}")
        return category, field_name

    def _split_models(self, atom_site: CifCategory) -> List[Tuple[int, List[int]]]:
        """Group atom_site row indices by pdbx_PDB_model_num, in file order."""
        if not atom_site.has_field("pdbx_PDB_model_num"):
            return [(1, list(range(atom_site.row_count)))]

        groups: Dict[int, List[int]] = {}
        for row in range(atom_site.row_count):
            try:
                model_num = atom_site.get_int("pdbx_PDB_model_num", row, default=1)
            except MalformedTable as exc:
                raise UnsupportedFormat(str(exc)) from exc
            groups.setdefault(model_num, []).append(row)
        return list(groups.items())

    def _decode_model(
        self,
        atom_site: CifCategory,
        rows: List[int],
        model_num: int,
        index: int,
        source: MmcifSource,
    ) -> Model:
        """Decode the atom_site rows of one model into chains."""
        chains_dict: Dict[str, Chain] = {}
        residues_dict: Dict[Tuple[str, int, str], Residue] = {}
        skipped = 0

        def get_field(name: str, row: int, default: str = "") -> str:
            return atom_site.get_str(name, row, default)

        for row in rows:
            x_raw = get_field("Cartn_x", row)
            y_raw = get_field("Cartn_y", row)
            z_raw = get_field("Cartn_z", row)

            try:
                coords = np.array([float(x_raw), float(y_raw), float(z_raw)], dtype=np.float32)
            except ValueError:
                skipped += 1
                continue

            asym_id = get_field("label_asym_id", row)
            entity_id = get_field("label_entity_id", row)
            res_name = get_field("label_comp_id", row, get_field("auth_comp_id", row, "UNK"))
            seq_raw = get_field("label_seq_id", row) or get_field("auth_seq_id", row, "0")
            ins_code = get_field("pdbx_PDB_ins_code", row)
            atom_name = get_field("label_atom_id", row, get_field("auth_atom_id", row))
            element = get_field("type_symbol", row)

            try:
                res_seq = int(seq_raw)
                occupancy = float(get_field("occupancy", row, "1.0"))
                b_factor = float(get_field("B_iso_or_equiv", row, "0.0"))
                serial = int(get_field("id", row, "0"))
            except ValueError as exc:
                raise UnsupportedFormat(
                    f"Invalid atom_site row {row} in model {model_num}: {exc}",
                    index=index,
                ) from exc

            charge_str = get_field("pdbx_formal_charge", row, "0")
            try:
                charge = int(charge_str)
            except ValueError:
                charge = 0

            atom = Atom(
                name=atom_name,
                element=element,
                coords=coords,
                occupancy=occupancy,
                b_factor=b_factor,
                charge=charge,
                is_hetero=get_field("group_PDB", row, "ATOM") == "HETATM",
                alt_loc=get_field("label_alt_id", row),
                serial=serial,
            )

            if self.remove_hydrogens and atom.is_hydrogen:
                continue

            if asym_id not in chains_dict:
                chains_dict[asym_id] = Chain(
                    asym_id=asym_id,
                    entity_id=entity_id,
                    auth_asym_id=get_field("auth_asym_id", row, asym_id),
                )

            res_key = (asym_id, res_seq, ins_code)
            if res_key not in residues_dict:
                residue = Residue(name=res_name, seq_id=res_seq, insertion_code=ins_code)
                residues_dict[res_key] = residue
                chains_dict[asym_id].residues.append(residue)

            residue = residues_dict[res_key]

            # Handle alternative locations
            if atom_name in residue.atoms:
                existing = residue.atoms[atom_name]
                if self.alt_loc_policy == "occupancy" and atom.occupancy > existing.occupancy:
                    residue.atoms[atom_name] = atom
            else:
                residue.atoms[atom_name] = atom

        if skipped:
            logger.warning(f"Model {model_num}: skipped {skipped} atom(s) without coordinates")

        if self.remove_waters:
            for chain in chains_dict.values():
                chain.residues = [res for res in chain.residues if not res.is_water]
            chains_dict = {cid: c for cid, c in chains_dict.items() if c.residues}

        return Model(
            label=source.entry_id,
            model_num=model_num,
            entities=source.entities,
            chains=chains_dict,
            source=source,
            index=index,
        )


def load_trajectory(
    path: Union[str, Path, TextIO],
    config: Optional["ParserConfig"] = None,
) -> Trajectory:
    """Convenience function to parse an mmCIF file into a trajectory."""
    parser = MMCIFParser.from_config(config) if config is not None else MMCIFParser()
    return parser.parse_trajectory(path)
