"""PetWorld: per-model assembly building for multi-model mmCIF trajectories.

This package provides tools for:
- Parsing multi-model mmCIF files into lazily decoded trajectories
- Parsing assembly operator expressions and building operator groups per model
- Building and caching the assembled structure of any model
- Writing assembled structures back to mmCIF
"""

from petworld.config import Config
from petworld.assembly.builder import ModelsAssemblyBuilder, build_models_assembly
from petworld.data.parsers.mmcif_parser import load_trajectory

__version__ = "0.1.0"
__all__ = [
    "Config",
    "ModelsAssemblyBuilder",
    "build_models_assembly",
    "load_trajectory",
    "__version__",
]
