"""
SOV Workbook Extractor CLI

Usage:
    sov-extract "input/Client SOV.xlsx"
    sov-extract "input/Client SOV.xlsx" --output output/sov.json
    sov-extract "input/Client SOV.xlsx" --format table
    sov-extract "input/Client SOV.xlsx" --format csv --output output/buildings.csv
"""

import argparse
import logging
import sys
from pathlib import Path

from .extractor import extract_sov, to_json, to_plain
from .types import ExtractionError

logger = logging.getLogger("sov_extractor")


def buildings_dataframe(buildings: list[dict]):
    """Flatten building records into a DataFrame (nested keys become a.b.c columns)."""
    import pandas as pd

    return pd.json_normalize(to_plain(buildings))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Extract buildings and policy terms from SOV Excel workbooks'
    )
    parser.add_argument('filepath', help='Path to the Excel file')
    parser.add_argument('--output', '-o',
                        help='Output file (default: <input>.output.json for json format)')
    parser.add_argument('--format', '-f', choices=['json', 'csv', 'table'],
                        default='json', help='Output format')
    parser.add_argument('--strict', action='store_true',
                        help='Fail instead of skipping policy terms on version/schema errors')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        datefmt='%H:%M:%S',
    )

    logger.info("Processing %s", args.filepath)
    try:
        record = extract_sov(args.filepath, strict=args.strict)
    except (FileNotFoundError, ValueError, ExtractionError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    logger.info("SOV id: %s", record['id'])
    logger.info("Info count: %d", len(record['extra_data']))

    fmt = args.format
    output = args.output

    if fmt == 'table':
        df = buildings_dataframe(record['buildings'])
        print(df.to_string(index=False))
        print(f"\nTotal: {record['num_buildings']} buildings")
        return 0

    if fmt == 'csv':
        output_content = buildings_dataframe(record['buildings']).to_csv(index=False)
    else:
        output_content = to_json(record)
        if not output:
            output = args.filepath + '.output.json'

    if output:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        Path(output).write_text(output_content)
        logger.info("Wrote %s", output)
    else:
        print(output_content)
    return 0


if __name__ == '__main__':
    sys.exit(main())
