"""Building the assembled structure of one trajectory frame.

A PetWorld trajectory stores one model per frame. Every frame has its own
operator group inside each assembly, so the replicated structure of frame
``i`` is obtained by placing all chains of model ``i`` under every operator
of group ``i``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from petworld.assembly.cache import AssemblyCache, get_default_cache
from petworld.assembly.definitions import ModelsAssembly
from petworld.assembly.operators import SymmetryOperator
from petworld.config import AssemblyConfig
from petworld.data.parsers.structure import AssembledStructure, Model, Unit, build_base_units
from petworld.data.trajectory import Trajectory
from petworld.exceptions import AssemblyNotFound
from petworld.utils import Timer


logger = logging.getLogger(__name__)


def label_models(model: Model, label: str) -> Model:
    """Return a copy of ``model`` labelled ``label``.

    The label becomes the model's own label and the description of every
    entity its chains reference. The original model and its entity table are
    left untouched. Applying the same label twice gives an equal model.
    """
    entities = model.entities.with_description(model.referenced_entity_ids(), label)
    if entities is model.entities and model.label == label:
        return model
    return replace(model, entities=entities, label=label)


def find_assembly(
    assemblies: Tuple[ModelsAssembly, ...],
    assembly_id: str,
) -> ModelsAssembly:
    """Select an assembly by id, ignoring case.

    Raises:
        AssemblyNotFound: No assembly has the requested id
    """
    wanted = assembly_id.lower()
    for candidate in assemblies:
        if candidate.id.lower() == wanted:
            return candidate
    available = ", ".join(a.id for a in assemblies) or "none"
    raise AssemblyNotFound(
        f"Assembly '{assembly_id}' is not defined (available: {available})",
        assembly_id=assembly_id,
    )


class ModelsAssemblyBuilder:
    """Builds per-frame assemblies of a trajectory.

    Example usage:
        >>> builder = ModelsAssemblyBuilder()
        >>> structure = await builder.build(trajectory, "1", model_index=0)
    """

    def __init__(
        self,
        cache: Optional[AssemblyCache] = None,
        config: Optional[AssemblyConfig] = None,
    ):
        """Initialize the builder.

        Args:
            cache: Assembly cache to use (the process-wide cache if None)
            config: Assembly settings (uses defaults if None)
        """
        self.cache = cache if cache is not None else get_default_cache()
        self.config = config or AssemblyConfig()

    async def build(
        self,
        trajectory: Trajectory,
        assembly_id: Optional[str] = None,
        model_index: int = 0,
    ) -> Optional[AssembledStructure]:
        """Build the assembled structure of one frame.

        Args:
            trajectory: Source trajectory
            assembly_id: Assembly id, matched case-insensitively
                (``config.assembly_id`` if None)
            model_index: Zero-based frame index

        Returns:
            The assembled structure, or None when the frame carries no mmCIF
            assembly metadata or its assembly has no operator group for it

        Raises:
            FrameResolutionError: The frame cannot be resolved
            AssemblyNotFound: The assembly id is not defined
            InvalidExpression: An operator expression of the file is malformed
        """
        if assembly_id is None:
            assembly_id = self.config.assembly_id

        model = await trajectory.get_frame_at_index(model_index)
        source = model.source
        if source is None:
            logger.info(f"Model {model_index} has no mmCIF assembly metadata")
            return None

        label = source.model_name(model_index) or model.label
        model = label_models(model, label)

        with Timer(f"assembly '{assembly_id}' of model {model_index}", logger=logger):
            assemblies = self.cache.get_or_build(trajectory)
            models_assembly = find_assembly(assemblies, assembly_id)

            group = models_assembly.assembly.get_operator_group(model_index)
            if group is None:
                logger.info(
                    f"Assembly '{models_assembly.id}' has no operator group for model {model_index}"
                )
                return None

            if len(group) > self.config.max_operators:
                logger.warning(
                    f"Model {model_index} has {len(group)} operators in assembly "
                    f"'{models_assembly.id}', exceeding {self.config.max_operators}"
                )

            units = self._replicate(model, group.operators)

        structure = AssembledStructure(model=model, units=units)
        if structure.num_atoms > self.config.max_atoms:
            logger.warning(
                f"Assembled structure has {structure.num_atoms} atoms, "
                f"exceeding {self.config.max_atoms}"
            )
        logger.debug(f"Built {label}: {structure.element_description()}")
        return structure

    @staticmethod
    def _replicate(model: Model, operators: Tuple[SymmetryOperator, ...]) -> List[Unit]:
        base_units = build_base_units(model, SymmetryOperator.identity())
        units = []
        for operator in operators:
            for unit in base_units:
                units.append(Unit(chain=unit.chain, operator=operator))
        return units


def build_models_assembly(
    trajectory: Trajectory,
    assembly_id: Optional[str] = None,
    model_index: int = 0,
    cache: Optional[AssemblyCache] = None,
    config: Optional[AssemblyConfig] = None,
) -> Optional[AssembledStructure]:
    """Synchronous wrapper around :meth:`ModelsAssemblyBuilder.build`."""
    builder = ModelsAssemblyBuilder(cache=cache, config=config)
    return asyncio.run(builder.build(trajectory, assembly_id, model_index))


__all__ = [
    "ModelsAssemblyBuilder",
    "build_models_assembly",
    "find_assembly",
    "label_models",
]
