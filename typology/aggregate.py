"""
Survey-weighted aggregation by country.

Two statistics are produced for each categorical variable:

* Prevalence: weighted share of records in each category.
* Conditional mean: weighted mean of a risk indicator within each
  category.

Each result has one row per country, in sorted country order, followed
by a pooled row computed over all included records with their own
weights. Columns are the variable's category codes in declared order;
categories without records get a share of 0.

Cells whose weighted denominator is zero are undefined and hold NaN.
They are listed on the result and reported with a warning.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import pandas as pd

from .recodes import CategoricalVariable

POOLED_LABEL = "EU (weighted)"


@dataclass
class AggregationResult:
    """
    One aggregation table.

    Attributes:
        variable: Categorical variable defining the columns
        table: Rows = countries + pooled row, columns = category codes
        indicator: Risk indicator for conditional means (None for prevalence)
        undefined: (row, category code) cells with zero weighted denominator
    """

    variable: CategoricalVariable
    table: pd.DataFrame
    indicator: Optional[str] = None
    undefined: list[tuple[str, int]] = field(default_factory=list)

    @property
    def kind(self) -> str:
        return "prevalence" if self.indicator is None else "mean"

    @property
    def name(self) -> str:
        if self.indicator is None:
            return self.variable.name
        return f"{self.indicator}_{self.variable.name}"


def country_order(df: pd.DataFrame, country_field: str) -> list[str]:
    """Distinct country codes in sorted order."""
    return sorted(df[country_field].dropna().unique().tolist())


def _by_country(
    values: pd.Series,
    df: pd.DataFrame,
    variable: CategoricalVariable,
    country_field: str,
    countries: list[str],
) -> pd.DataFrame:
    """Sum ``values`` by country and category, with a pooled row appended."""
    codes = variable.codes
    if values.empty:
        return pd.DataFrame(
            0.0, index=countries + [POOLED_LABEL], columns=codes
        )
    per_country = (
        values.groupby([df[country_field], df[variable.name]])
        .sum()
        .unstack(fill_value=0.0)
        .reindex(index=countries, columns=codes, fill_value=0.0)
    )
    pooled = values.groupby(df[variable.name]).sum().reindex(codes, fill_value=0.0)
    per_country.loc[POOLED_LABEL] = pooled.values
    return per_country.astype(float)


def _undefined_cells(denominator: pd.DataFrame) -> list[tuple[str, int]]:
    rows, cols = np.nonzero(denominator.values <= 0)
    return [
        (denominator.index[r], int(denominator.columns[c]))
        for r, c in zip(rows, cols)
    ]


def _finish(
    table: pd.DataFrame,
    undefined: list[tuple[str, int]],
    variable: CategoricalVariable,
    indicator: Optional[str] = None,
) -> AggregationResult:
    table.index.name = "country"
    table.columns.name = variable.name
    result = AggregationResult(
        variable=variable,
        table=table,
        indicator=indicator,
        undefined=undefined,
    )
    if undefined:
        preview = ", ".join(f"{row}/{code}" for row, code in undefined[:10])
        more = f" (+{len(undefined) - 10} more)" if len(undefined) > 10 else ""
        warnings.warn(
            f"{result.name}: {len(undefined)} cells have zero weight and "
            f"are undefined: {preview}{more}"
        )
    return result


def weighted_prevalence(
    df: pd.DataFrame,
    variable: CategoricalVariable,
    weight_field: str,
    country_field: str,
) -> AggregationResult:
    """
    Weighted share of each category, per country and pooled.

    For subset S and category k:
        sum(weight[S & x == k]) / sum(weight[S])

    Args:
        df: Recoded microdata
        variable: Categorical variable to tabulate
        weight_field: Survey weight column
        country_field: Country column

    Returns:
        AggregationResult whose rows each sum to 1 (or are NaN if the
        row has no weight)
    """
    countries = country_order(df, country_field)
    weights = df[weight_field].astype(float)

    mass = _by_country(weights, df, variable, country_field, countries)

    totals = weights.groupby(df[country_field]).sum().reindex(countries, fill_value=0.0)
    totals.loc[POOLED_LABEL] = weights.sum()

    table = mass.div(totals.where(totals > 0), axis=0)

    empty_rows = totals.index[totals <= 0]
    undefined = [(row, code) for row in empty_rows for code in variable.codes]
    return _finish(table, undefined, variable)


def weighted_conditional_mean(
    df: pd.DataFrame,
    indicator: str,
    variable: CategoricalVariable,
    weight_field: str,
    country_field: str,
) -> AggregationResult:
    """
    Weighted mean of an indicator within each category.

    For subset S and category k:
        sum(weight * y) / sum(weight), over records in S with x == k

    Records with a missing indicator value are left out of both sums.

    Args:
        df: Recoded microdata
        indicator: Risk indicator column (0/1 flag or numeric)
        variable: Categorical variable defining the groups
        weight_field: Survey weight column
        country_field: Country column

    Returns:
        AggregationResult with NaN where a country has no weight in a
        category
    """
    countries = country_order(df, country_field)

    y = pd.to_numeric(df[indicator], errors="coerce")
    observed = df.loc[y.notna()]
    weights = observed[weight_field].astype(float)

    numerator = _by_country(
        weights * y[y.notna()], observed, variable, country_field, countries
    )
    denominator = _by_country(weights, observed, variable, country_field, countries)

    table = numerator / denominator.where(denominator > 0)
    return _finish(table, _undefined_cells(denominator), variable, indicator)


def aggregate_all(
    df: pd.DataFrame,
    variables: list[CategoricalVariable],
    indicators: list[str],
    weight_field: str,
    country_field: str,
) -> list[AggregationResult]:
    """
    Prevalence for every variable and conditional means for every
    (indicator, variable) pair.
    """
    results = []
    for variable in variables:
        results.append(
            weighted_prevalence(df, variable, weight_field, country_field)
        )
    for indicator in indicators:
        for variable in variables:
            results.append(
                weighted_conditional_mean(
                    df, indicator, variable, weight_field, country_field
                )
            )
    return results
