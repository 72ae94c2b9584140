#!/usr/bin/env python3
"""Link spec entries to registry units (deterministic, no Oracle calls).

Sets primaryUnitId / primaryUnitGroupId / alternateUnitIds on every entry
whose unit text resolves, writes the linked entries, and lists unmatched
references with fuzzy suggestions for review.

Usage:
    python scripts/units/link_units.py --specs output/spec-types-master.json
"""

import argparse
import logging
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from unitgraph.config import load_settings
from unitgraph.specs.specloader import load_spec_entries
from unitgraph.units.unitlink import link_spec_entries, linked_specs_document, suggest_units
from unitgraph.units.unitregistry import RegistryError, load_registry
from unitgraph.utils.dataloader import write_json_atomic


def main(argv=None):
    parser = argparse.ArgumentParser(description='Link spec entries to canonical units')
    parser.add_argument('--specs', type=Path, required=True, help='Spec entries (.json, .parquet, .csv)')
    parser.add_argument('--registry', type=Path, default=None, help='Registry file')
    parser.add_argument('--output', '-o', type=Path, default=None, help='Linked spec entries output')
    parser.add_argument('--config', type=Path, default=None, help='YAML config override')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.config)
        registry = load_registry(args.registry or settings.registry_path)
        units = registry.unit_list()
        print(f"📂 Loaded {len(units):,} units")

        entries = load_spec_entries(args.specs)
        print(f"📂 Loaded {len(entries):,} spec entries\n")

        report = link_spec_entries(entries, registry)
        print("📊 Results:")
        print(f"   - {report.linked:,} unit references linked")
        print(f"   - {report.unmatched:,} unmatched unit references\n")

        if report.unmatched_refs:
            print("⚠️  Unmatched units (first 20):")
            for reference in report.unmatched_refs[:20]:
                suggestions = suggest_units(reference, units, k=3)
                hint = ", ".join(f"{u.symbol} ({score:.0f})" for u, score in suggestions)
                print(f"   - {reference}" + (f"  → maybe: {hint}" if hint else ""))
            print("")

        output_path = args.output or settings.linked_specs_path
        updated_at = datetime.now(timezone.utc).isoformat()
        write_json_atomic(output_path, linked_specs_document(entries, report, updated_at))
        print(f"💾 Saved to: {output_path}")
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
