#!/usr/bin/env python3
"""Classify registry units into groups and generate their conversions.

Resumes automatically from the checkpoint file. Progress is saved after
every batch, so the script can be interrupted at any point and run again.

Usage:
    # Full run (resumes where the last run stopped)
    python scripts/units/generate_conversions.py

    # Process at most 5 groups, then stop (run again to continue)
    python scripts/units/generate_conversions.py --max-groups 5

    # Revisit completed groups that are still missing conversions
    python scripts/units/generate_conversions.py --reopen-incomplete

Environment Variables:
    ANTHROPIC_API_KEY: Anthropic API key (also read from .env)
    UNITGRAPH_OUTPUT_DIR: Output directory (default: output)
    UNITGRAPH_MODEL: Model override
"""

import argparse
import asyncio
import logging
import sys
import traceback
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from unitgraph.config import load_settings
from unitgraph.oracle import AnthropicOracle
from unitgraph.units.unitpipeline import ConversionPipeline, PipelineContext, reopen_incomplete_groups
from unitgraph.units.unitregistry import RegistryError


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Classify units and generate the unit conversion graph',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--max-groups',
        type=int,
        default=None,
        help='Stop after this many fully processed groups'
    )
    parser.add_argument(
        '--registry',
        type=Path,
        default=None,
        help='Registry file (default: <output_dir>/global-units-master.json)'
    )
    parser.add_argument(
        '--config',
        type=Path,
        default=None,
        help='YAML config merged over the packaged defaults'
    )
    parser.add_argument(
        '--reopen-incomplete',
        action='store_true',
        help='Revisit completed groups that still lack conversions'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable debug logging'
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    try:
        settings = load_settings(args.config)
        context = PipelineContext.create(settings, AnthropicOracle(settings), registry_path=args.registry)

        print("Generating unit conversions...")
        print("=" * 70)
        print(f"Registry:   {context.registry_path}")
        print(f"Checkpoint: {context.store.path}")
        print(f"Units: {len(context.registry):,}  Groups: {len(context.registry.groups):,}")
        if args.max_groups:
            print(f"Batch mode: {args.max_groups} groups max")

        if args.reopen_incomplete:
            reopened = reopen_incomplete_groups(context.registry, context.checkpoint)
            print(f"Reopened {len(reopened)} incomplete groups")
            context.store.save(context.checkpoint)

        stats = asyncio.run(ConversionPipeline(context).run(max_groups=args.max_groups))

        print("\n" + "=" * 70)
        print("Conversion generation summary")
        print(f"  - Units classified:       {stats.units_classified:,} ({stats.fallback_classifications:,} fallback)")
        print(f"  - Groups processed:       {stats.groups_processed:,}")
        print(f"  - Direct conversions:     {stats.conversions_added:,} added, {stats.conversions_rejected:,} rejected")
        print(f"  - Derived conversions:    {stats.conversions_derived:,}")
        print(f"  - Oracle failures:        {stats.oracle_failures:,} / {stats.oracle_calls:,} calls")
        print(f"  - Consistency warnings:   {stats.consistency_warnings:,}")
        print(f"  - Total conversions:      {context.registry.total_conversions():,}")

        if stats.group_limit_reached:
            print(f"\n⚠️  Group limit reached, {stats.groups_remaining} groups left. Run again to continue.")
        else:
            print("\n✅ All groups processed")

        return 0

    except RegistryError as e:
        print(f"\n❌ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user (progress saved in checkpoint)")
        return 1
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
