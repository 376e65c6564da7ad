"""
Command-line entry point: correlate drift artifacts from a JSON file.
"""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from drift_flow.core.config import load_config
from drift_flow.core.correlation_engine import CorrelationEngine
from drift_flow.core.report import CorrelationReportBuilder


def load_artifacts(path: Path) -> List[Dict[str, Any]]:
    """Read a JSON list of artifacts, or an object with an ``artifacts`` list."""
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("artifacts")
    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of artifacts or an object with an 'artifacts' list")
    return data


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drift-flow",
        description="Correlate cross-layer drift artifacts and escalate severities.",
    )
    parser.add_argument("artifacts", help="Path to a JSON file with drift artifacts.")
    parser.add_argument("--config", help="Path to configuration YAML file (default: driftflow.config.yaml)")
    parser.add_argument("--output", help="Write the report to a file instead of stdout.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def run(args: argparse.Namespace) -> int:
    artifacts_path = Path(args.artifacts)
    try:
        raw_artifacts = load_artifacts(artifacts_path)
    except (OSError, ValueError) as e:
        print(f"❌ Error: could not read artifacts from {artifacts_path}: {e}", file=sys.stderr)
        return 1

    config = load_config(config_path=args.config, cli_args={})
    result = CorrelationEngine(config).run(raw_artifacts)

    meta = {
        "source": str(artifacts_path),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "thresholds": config.thresholds.model_dump(),
    }
    report = CorrelationReportBuilder(block_min=config.thresholds.block_min).build_report(result, meta)
    output = json.dumps(report, indent=2, ensure_ascii=False)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(output, encoding="utf-8")
        print(f"📄 Correlation report exported to {output_path}", file=sys.stderr)
    else:
        print(output)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the correlator."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        stream=sys.stderr,
        format="%(levelname)s %(message)s",
    )
    return run(args)


if __name__ == "__main__":
    sys.exit(main())
