#!/usr/bin/env python3
"""Discover units referenced by spec entries and add them to the registry.

New symbols become ungrouped units (classified later by
generate_conversions.py). Existing units are kept as they are; case
variants of known symbols are recorded as abbreviations.

Usage:
    python scripts/units/extract_units.py --specs output/spec-types-master.json
"""

import argparse
import logging
import sys
import traceback
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from unitgraph.config import load_settings
from unitgraph.specs.specloader import load_spec_entries
from unitgraph.units.unitextract import extract_units
from unitgraph.units.unitregistry import RegistryError, load_registry, save_registry


def main(argv=None):
    parser = argparse.ArgumentParser(description='Extract units from spec entries into the registry')
    parser.add_argument('--specs', type=Path, required=True, help='Spec entries (.json, .parquet, .csv)')
    parser.add_argument('--registry', type=Path, default=None, help='Registry file (created if missing)')
    parser.add_argument('--config', type=Path, default=None, help='YAML config override')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.config)
        registry_path = args.registry or settings.registry_path
        registry = load_registry(registry_path, create_missing=True)

        print('🔍 Extracting units from spec entries...\n')
        entries = load_spec_entries(args.specs)
        print(f"📂 Loaded {len(entries):,} spec entries\n")

        report = extract_units(entries, registry)

        print(f"📊 Total unique unit references: {report.total_unique:,}\n")
        print("🔝 Most common units:")
        for index, usage in enumerate(report.most_common(10), 1):
            print(f"   {index}. {usage.symbol} ({usage.count} occurrences in {len(usage.spec_names)} spec types)")

        print(f"\n   New units:    {len(report.added):,}")
        print(f"   New variants: {len(report.variants):,}")
        print(f"   Ungrouped:    {len(registry.ungrouped_units()):,}")

        save_registry(registry, registry_path)
        print(f"\n💾 Saved to: {registry_path}")
        return 0

    except (RegistryError, FileNotFoundError, ValueError) as e:
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
