"""
Typology pipeline: household-typology prevalence and risk tables.

Loads survey microdata, derives the household typology variables,
computes weighted prevalence and conditional means by country, and
writes the tables to spreadsheets.

Usage:
    python -m typology.pipeline --config config.yaml
    python -m typology.pipeline --config config.yaml --dry-run
    python -m typology.pipeline --config config.yaml --synthetic
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import pandas as pd

from .aggregate import AggregationResult, aggregate_all
from .config import PipelineConfig, load_config
from .loader import generate_synthetic_survey, load_records
from .recodes import VARIABLES, recode_variables
from .report import build_appendix, build_sheets, write_appendix, write_sheets
from .schema import MissingFieldError


@dataclass
class PipelineResult:
    """Everything a pipeline run produced."""
    records: pd.DataFrame
    results: list[AggregationResult]
    appendix: list[tuple[str, pd.DataFrame]]
    written: list[Path] = field(default_factory=list)

    def get(self, variable: str, indicator: Optional[str] = None) -> AggregationResult:
        """Look up a result by variable and (optionally) indicator."""
        for result in self.results:
            if result.variable.name == variable and result.indicator == indicator:
                return result
        raise KeyError(f"No result for variable={variable!r}, indicator={indicator!r}")


def run_pipeline(
    config: PipelineConfig,
    raw: Optional[pd.DataFrame] = None,
    dry_run: bool = False,
    verbose: bool = True,
) -> PipelineResult:
    """
    Run the full pipeline.

    Args:
        config: Pipeline configuration
        raw: Microdata to use instead of reading config.input_path
        dry_run: Compute all tables but write nothing
        verbose: Print progress

    Returns:
        PipelineResult with the recoded records, tables and written paths
    """
    if verbose:
        print("=" * 60)
        print(f"TYPOLOGY TABLES {config.year_tag}")
        print("=" * 60)

    records = load_records(config, raw=raw, verbose=verbose)
    records = recode_variables(records, config.fields)

    missing = [v for v in config.input_variables if v not in records.columns]
    if missing:
        raise MissingFieldError(f"Risk indicators not in microdata: {missing}")

    variables = [VARIABLES[name] for name in config.output_variables]
    if verbose:
        print(
            f"Aggregating {len(variables)} variables x "
            f"{len(config.input_variables)} indicators..."
        )
    results = aggregate_all(
        records,
        variables,
        config.input_variables,
        config.weight_field,
        config.fields.country,
    )
    appendix = build_appendix(records, config.fields)
    # Must precede any write: raises on invalid sheet names
    sheets = build_sheets(results, config.year_tag)

    outcome = PipelineResult(records=records, results=results, appendix=appendix)

    if dry_run:
        if verbose:
            print("\nDRY RUN - not writing output files")
        return outcome

    outcome.written.append(write_appendix(appendix, config.appendix_path))
    outcome.written.append(write_sheets(sheets, config.output_path))

    if verbose:
        print("\n" + "=" * 60)
        print("SUMMARY")
        print("=" * 60)
        print(f"Records: {len(records):,}")
        print(f"Weighted population: {records[config.weight_field].sum():,.0f}")
        print(f"Sheets written: {len(results)}")
        undefined = sum(len(r.undefined) for r in results)
        print(f"Undefined cells: {undefined}")
        for path in outcome.written:
            print(f"  -> {path}")

    return outcome


def main(argv: Optional[list[str]] = None):
    import argparse

    parser = argparse.ArgumentParser(
        description="Compute household-typology prevalence and risk tables"
    )
    parser.add_argument("--config", required=True, help="YAML config file")
    parser.add_argument("--year", type=int, help="Override the year tag")
    parser.add_argument("--output", help="Override the results workbook path")
    parser.add_argument("--appendix", help="Override the appendix workbook path")
    parser.add_argument(
        "--synthetic",
        action="store_true",
        help="Use synthetic microdata instead of the input file",
    )
    parser.add_argument("--seed", type=int, default=42, help="Seed for --synthetic")
    parser.add_argument("--dry-run", action="store_true", help="Don't write output files")
    parser.add_argument("--quiet", action="store_true", help="Suppress progress output")
    args = parser.parse_args(argv)

    config = load_config(args.config)
    if args.year is not None:
        config.year = args.year
        config.reference_year = args.year
    if args.output:
        config.output_path = Path(args.output)
    if args.appendix:
        config.appendix_path = Path(args.appendix)

    raw = None
    if args.synthetic:
        raw = generate_synthetic_survey(year=config.year, seed=args.seed)

    run_pipeline(config, raw=raw, dry_run=args.dry_run, verbose=not args.quiet)


if __name__ == "__main__":
    main()
