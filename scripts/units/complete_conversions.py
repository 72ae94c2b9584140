#!/usr/bin/env python3
"""Complete every unit group's conversions by transitive closure.

Runs the closure and the inverse-consistency check over all groups of the
registry, rewrites the registry, and optionally exports the full conversion
table.

Usage:
    python scripts/units/complete_conversions.py
    python scripts/units/complete_conversions.py --export output/conversions.parquet
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from unitgraph.config import load_settings
from unitgraph.units.unitclosure import complete_all_groups
from unitgraph.units.unitregistry import RegistryError, export_conversions, load_registry, save_registry


def main(argv=None):
    parser = argparse.ArgumentParser(description='Complete unit conversions via transitive closure')
    parser.add_argument('--registry', type=Path, default=None, help='Registry file')
    parser.add_argument('--config', type=Path, default=None, help='YAML config override')
    parser.add_argument('--export', type=Path, default=None, help='Write conversion table (.parquet or .csv)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.config)
        registry_path = args.registry or settings.registry_path
        registry = load_registry(registry_path)
        print(f"📂 Loaded {len(registry.units):,} units in {len(registry.groups):,} groups\n")

        reports = complete_all_groups(registry, settings.consistency_tolerance)

        for report in reports:
            added = report.total - report.original
            status = "✓" if report.missing == 0 else f"{report.missing} unreachable"
            print(f"  {report.group_name}: {report.original} → {report.total} ({added:+d}) [{status}]")
            if report.consistency and report.consistency.mismatches:
                print(f"    ⚠️  {len(report.consistency.mismatches)} inverse mismatches")

        save_registry(registry, registry_path)

        print("\n" + "=" * 70)
        print(f"Total conversions: {registry.total_conversions():,}")
        print(f"💾 Saved to: {registry_path}")

        if args.export:
            df = export_conversions(registry, args.export)
            print(f"💾 Exported {len(df):,} rows to: {args.export}")

        return 0

    except RegistryError as e:
        print(f"\n❌ {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 1
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
