"""Command-line interface for PetWorld.

Provides CLI commands for:
- Building the assembly of one model of a multi-model mmCIF file
- Listing the assemblies a file defines
- Showing the effective configuration
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import yaml

from petworld.config import Config
from petworld.exceptions import PetworldError
from petworld.utils import setup_logging


logger = logging.getLogger("petworld.cli")


def load_config(args: argparse.Namespace) -> Config:
    """Load the configuration named by ``--config``, or the defaults."""
    if args.config:
        return Config.from_yaml(args.config)
    return Config()


def configure_logging(args: argparse.Namespace, config: Config) -> None:
    setup_logging(config.logging, verbose=args.verbose)


def cmd_assemble(args: argparse.Namespace, config: Config) -> int:
    """Build one model assembly command."""
    from petworld.assembly.builder import ModelsAssemblyBuilder
    from petworld.data.parsers.mmcif_parser import MMCIFParser
    from petworld.data.writers import write_assembled_mmcif

    if args.model < 1:
        logger.error(f"Model number must be >= 1, got {args.model}")
        return 1

    assembly_id = args.assembly or config.assembly.assembly_id
    logger.info(f"Building assembly '{assembly_id}' of model {args.model} from {args.input}")

    parser = MMCIFParser.from_config(config.parser)
    trajectory = parser.parse_trajectory(args.input)
    builder = ModelsAssemblyBuilder(config=config.assembly)

    structure = asyncio.run(builder.build(trajectory, assembly_id, args.model - 1))
    if structure is None:
        logger.warning(f"Model {args.model} has no operators in assembly '{assembly_id}'")
        return 0

    logger.info(
        f"{structure.label}: {structure.element_description()} "
        f"under {len(structure.operator_names)} operator(s)"
    )

    if args.output:
        write_assembled_mmcif(
            structure,
            args.output,
            separator=config.assembly.chain_id_separator,
        )
    return 0


def cmd_info(args: argparse.Namespace, config: Config) -> int:
    """List assemblies command."""
    from petworld.assembly.cache import create_models_assemblies
    from petworld.data.parsers.mmcif_parser import MMCIFParser

    trajectory = MMCIFParser.from_config(config.parser).parse_trajectory(args.input)
    assemblies = create_models_assemblies(trajectory.source)

    print(f"{trajectory.label}: {trajectory.frame_count} model(s)")
    if not assemblies:
        print("No assemblies defined")
        return 0

    for models_assembly in assemblies:
        definition = models_assembly.assembly
        print(f"Assembly {definition.id}: {definition.details or '-'}")
        for index, group in enumerate(definition.operator_groups):
            print(
                f"  model {index + 1} (PDB_model_num {models_assembly.model_nums[index]}): "
                f"{len(group)} operator(s), expression {group.expression!r}"
            )
    return 0


def cmd_config(args: argparse.Namespace, config: Config) -> int:
    """Configuration command."""
    if args.output:
        config.to_yaml(args.output)
        print(f"Created configuration file: {args.output}")
    else:
        print(yaml.dump(config.to_dict(), default_flow_style=False), end="")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="petworld",
        description="PetWorld - per-model assembly building for multi-model mmCIF files",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Path to configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Assemble command
    asm_parser = subparsers.add_parser(
        "assemble",
        help="Build the assembly of one model",
    )
    asm_parser.add_argument(
        "input",
        help="Input mmCIF file (optionally .gz)",
    )
    asm_parser.add_argument(
        "-a", "--assembly",
        help="Assembly id (default from configuration)",
    )
    asm_parser.add_argument(
        "-m", "--model",
        type=int,
        default=1,
        help="Model number, starting at 1",
    )
    asm_parser.add_argument(
        "-o", "--output",
        help="Write the assembled structure to this mmCIF file",
    )
    asm_parser.set_defaults(func=cmd_assemble)

    # Info command
    info_parser = subparsers.add_parser(
        "info",
        help="List the assemblies of a file",
    )
    info_parser.add_argument(
        "input",
        help="Input mmCIF file (optionally .gz)",
    )
    info_parser.set_defaults(func=cmd_info)

    # Config command
    cfg_parser = subparsers.add_parser(
        "config",
        help="Show or save the effective configuration",
    )
    cfg_parser.add_argument("-o", "--output", help="Output file path")
    cfg_parser.set_defaults(func=cmd_config)

    # Parse arguments
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        config = load_config(args)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    configure_logging(args, config)

    try:
        return args.func(args, config)
    except PetworldError as exc:
        logger.error(str(exc))
        return 1
    except OSError as exc:
        logger.error(f"I/O error: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
