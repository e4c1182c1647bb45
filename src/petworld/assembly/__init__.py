"""Per-model assembly building for multi-model PetWorld files.

Components:
- Operators: Operator matrix table and composed symmetry operators
- Expression: pdbx_struct_assembly_gen operator expression parsing
- Definitions: Assemblies with one operator group per model
- Cache: Per-trajectory memoization of assembly definitions
- Builder: Replication of a model's chains under its operator group
"""

from petworld.assembly.operators import (
    IDENTITY_NAME,
    SymmetryOperator,
    build_matrix_table,
    compose_matrices,
)
from petworld.assembly.expression import (
    parse_operator_expression,
    parse_operator_list,
)
from petworld.assembly.definitions import (
    AssemblyDefinition,
    ModelsAssembly,
    OperatorGroup,
    build_models_assemblies,
)
from petworld.assembly.cache import (
    AssemblyCache,
    create_models_assemblies,
    get_default_cache,
)
from petworld.assembly.builder import (
    ModelsAssemblyBuilder,
    build_models_assembly,
    find_assembly,
    label_models,
)

__all__ = [
    # Operators
    "IDENTITY_NAME",
    "SymmetryOperator",
    "build_matrix_table",
    "compose_matrices",
    # Expression
    "parse_operator_expression",
    "parse_operator_list",
    # Definitions
    "AssemblyDefinition",
    "ModelsAssembly",
    "OperatorGroup",
    "build_models_assemblies",
    # Cache
    "AssemblyCache",
    "create_models_assemblies",
    "get_default_cache",
    # Builder
    "ModelsAssemblyBuilder",
    "build_models_assembly",
    "find_assembly",
    "label_models",
]
