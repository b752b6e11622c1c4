"""
Spreadsheet output for aggregation results and cross-tab appendix.

All tables are built in memory before a workbook is opened, so a failure
while tabulating never leaves a partial file behind.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pandas as pd

from .aggregate import AggregationResult
from .config import FieldMap
from .recodes import CategoricalVariable, VARIABLES

# Excel's limit on sheet name length
MAX_SHEET_NAME = 31

APPENDIX_SHEET = "appendix"


def sheet_name(result: AggregationResult, year_tag: str) -> str:
    """Sheet name for a result: ``{indicator_}{variable}_{year}``."""
    name = f"{result.name}_{year_tag}"
    if len(name) > MAX_SHEET_NAME:
        raise ValueError(
            f"Sheet name '{name}' exceeds {MAX_SHEET_NAME} characters"
        )
    return name


def result_to_frame(result: AggregationResult) -> pd.DataFrame:
    """
    Lay out a result as written: a ``country`` column followed by one
    column per category label, in category order.
    """
    frame = result.table.rename(columns=result.variable.value_labels)
    frame = frame[result.variable.labels]
    frame.columns.name = None
    return frame.reset_index()


def crosstab(
    df: pd.DataFrame,
    column: str,
    country_field: str,
    variable: Optional[CategoricalVariable] = None,
) -> pd.DataFrame:
    """
    Unweighted country x variable frequency table with totals.

    When ``variable`` is given, every declared category appears as a
    column headed by its label.
    """
    table = pd.crosstab(df[country_field], df[column])
    if variable is not None:
        table = table.reindex(columns=variable.codes, fill_value=0)
        table = table.rename(columns=variable.value_labels)
    table["Total"] = table.sum(axis=1)
    table.loc["Total"] = table.sum(axis=0)
    table.index.name = country_field
    table.columns.name = None
    return table


def build_appendix(df: pd.DataFrame, fields: FieldMap) -> list[tuple[str, pd.DataFrame]]:
    """
    Cross-tabs of country against the raw and recoded typology variables.

    Order: household type, typology source, fht, hh_eurostat, fht5.
    """
    columns = [
        (fields.household_type, None),
        (fields.typology_source, None),
        (fields.fht, None),
        ("hh_eurostat", VARIABLES["hh_eurostat"]),
        ("fht5", VARIABLES["fht5"]),
    ]
    tables = []
    for column, variable in columns:
        title = f"{fields.country} x {column}"
        if variable is not None and variable.description:
            title = f"{title} ({variable.description})"
        tables.append((title, crosstab(df, column, fields.country, variable)))
    return tables


def build_sheets(
    results: list[AggregationResult],
    year_tag: str,
) -> dict[str, pd.DataFrame]:
    """
    Sheet name -> laid-out frame for every result.

    Raises:
        ValueError: If a sheet name is too long or used twice
    """
    sheets = {}
    for result in results:
        name = sheet_name(result, year_tag)
        if name in sheets:
            raise ValueError(f"Duplicate sheet name: {name}")
        sheets[name] = result_to_frame(result)
    return sheets


def write_results(
    results: list[AggregationResult],
    output_path: str | Path,
    year_tag: str,
) -> Path:
    """
    Write one sheet per aggregation result.

    Raises:
        ValueError: If a sheet name is too long or used twice
    """
    return write_sheets(build_sheets(results, year_tag), output_path)


def write_sheets(sheets: dict[str, pd.DataFrame], output_path: str | Path) -> Path:
    """Write prepared sheets to a workbook."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        for name, frame in sheets.items():
            frame.to_excel(writer, sheet_name=name, index=False)

    return output_path


def write_appendix(
    tables: list[tuple[str, pd.DataFrame]],
    output_path: str | Path,
) -> Path:
    """
    Write the cross-tab tables stacked on a single sheet.

    Each table is preceded by a title row and followed by two blank rows.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        row = 0
        for title, table in tables:
            pd.DataFrame([[title]]).to_excel(
                writer, sheet_name=APPENDIX_SHEET,
                index=False, header=False, startrow=row,
            )
            table.to_excel(writer, sheet_name=APPENDIX_SHEET, startrow=row + 1)
            # title + header + body + 2 blank rows
            row += len(table) + 4

    return output_path
