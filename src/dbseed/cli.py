"""Command-line entry point for dbseed."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from typing import Optional

from dbseed.config import SeedConfig, set_config
from dbseed.pipeline.runner import RunStatus, SeedRunner
from dbseed.sql.dialects import DIALECTS

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbseed",
        description="Generate INSERT scripts with synthetic rows for a relational schema.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--ddl", help="Path to a SQL DDL file")
    source.add_argument("--schema", help="Path to a JSON or YAML schema definition")
    source.add_argument("--url", help="SQLAlchemy database URL to reflect")
    parser.add_argument(
        "--rows", type=int, default=None,
        help="Number of rows to generate per table (default: DBSEED_ROWS_PER_TABLE or 10)",
    )
    parser.add_argument(
        "--dialect", choices=sorted(DIALECTS), default=None,
        help="SQL dialect for the output (default: detected from the input)",
    )
    parser.add_argument(
        "--deferred", action="store_true", default=None,
        help="Insert cyclic FKs in one transaction with constraint checks suspended",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible output")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per INSERT statement")
    parser.add_argument("--out", help="Write SQL to this file instead of stdout")
    parser.add_argument("--csv-dir", help="Also write one CSV file per table into this directory")
    parser.add_argument("--summary", action="store_true", help="Print the run summary as JSON to stderr")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _config_from_args(args: argparse.Namespace) -> SeedConfig:
    config = SeedConfig.from_env()
    overrides = {
        "rows_per_table": args.rows,
        "dialect": args.dialect,
        "deferred": args.deferred,
        "seed": args.seed,
        "batch_size": args.batch_size,
    }
    return replace(config, **{k: v for k, v in overrides.items() if v is not None})


def main(argv: Optional[list[str]] = None) -> int:
    """Run dbseed and return the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if args.rows is not None and args.rows < 0:
        parser.error("--rows must be zero or greater")

    config = _config_from_args(args)
    set_config(config)

    if args.url:
        source, filename = args.url, None
    else:
        filename = args.ddl or args.schema
        try:
            with open(filename, encoding="utf-8") as fh:
                source = fh.read()
        except OSError as e:
            logger.error(f"Cannot read {filename}: {e}")
            return 1

    result = SeedRunner(config).run(source, filename=filename)
    if args.summary:
        print(json.dumps(result.to_dict(), indent=2), file=sys.stderr)
    if result.status != RunStatus.COMPLETE:
        logger.error(f"Seeding failed: {result.error}")
        return 1

    if args.out:
        out_path = os.path.join(config.output_directory, args.out)
        with open(out_path, "w", encoding="utf-8") as fh:
            fh.write(result.sql)
        logger.info(f"Wrote {result.rows_generated} rows to {out_path}")
    else:
        sys.stdout.write(result.sql)

    if args.csv_dir:
        csv_dir = os.path.join(config.output_directory, args.csv_dir)
        os.makedirs(csv_dir, exist_ok=True)
        for name, frame in result.generation.to_dataframes().items():
            frame.to_csv(os.path.join(csv_dir, f"{name}.csv"), index=False)
        logger.info(f"Wrote CSV files to {csv_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
