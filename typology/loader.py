"""
Microdata loading and normalization.

Reads the survey file, lower-cases column names, derives sex and age,
and drops countries that cannot be tabulated. Each step returns a new
DataFrame; the loaded records are not modified afterwards.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Optional

import numpy as np
import pandas as pd

from .config import FieldMap, PipelineConfig
from .schema import SurveySchema, validate_records

# Readers by file suffix
READERS = {
    ".parquet": pd.read_parquet,
    ".csv": pd.read_csv,
    ".dta": lambda path: pd.read_stata(path, convert_categoricals=False),
}

# EU-SILC style country codes used by the synthetic generator
SYNTHETIC_COUNTRIES = ["AT", "BE", "DE", "ES", "FR", "IT", "NL", "PL"]


def read_microdata(path: str | Path) -> pd.DataFrame:
    """
    Read a microdata file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file format is not supported
    """
    path = Path(path)
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        raise ValueError(
            f"Unsupported microdata format: {path.suffix}. "
            f"Supported: {sorted(READERS)}"
        )
    if not path.exists():
        raise FileNotFoundError(f"Microdata not found at {path}")
    return reader(path)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Return a copy with lower-cased, stripped column names."""
    renamed = [str(c).strip().lower() for c in df.columns]
    duplicates = sorted({c for c in renamed if renamed.count(c) > 1})
    if duplicates:
        raise ValueError(f"Columns collide after lower-casing: {duplicates}")
    result = df.copy()
    result.columns = renamed
    return result


def derive_demographics(
    df: pd.DataFrame,
    fields: FieldMap,
    reference_year: int,
    absent: Optional[list[str]] = None,
) -> pd.DataFrame:
    """
    Add ``sex`` and ``age`` columns.

    Age is taken from the direct age field when present, otherwise
    computed as ``reference_year - birth_year - 1``. Negative ages are
    clamped to 0. Derivations whose source fields are absent are
    skipped with a warning.

    Args:
        df: Normalized microdata
        fields: FieldMap naming the source columns
        reference_year: Year age is measured against
        absent: Optional fields missing from ``df``, as returned by
            ``SurveySchema.check`` (computed from the columns if None)
    """
    if absent is None:
        absent = SurveySchema.from_fields(fields, "").check_optional(df)
    result = df.copy()

    if fields.sex in absent:
        warnings.warn(f"Sex field '{fields.sex}' not found, skipping 'sex'")
    elif fields.sex != "sex":
        if "sex" in result.columns:
            warnings.warn(
                f"Column 'sex' already present, keeping it and ignoring "
                f"'{fields.sex}'"
            )
        else:
            result = result.rename(columns={fields.sex: "sex"})

    if fields.age not in absent:
        age = pd.to_numeric(result[fields.age], errors="coerce")
    elif fields.birth_year not in absent:
        warnings.warn(
            f"Age field '{fields.age}' not found, deriving age from "
            f"'{fields.birth_year}'"
        )
        birth_year = pd.to_numeric(result[fields.birth_year], errors="coerce")
        age = reference_year - birth_year - 1
    else:
        warnings.warn(
            f"Neither '{fields.age}' nor '{fields.birth_year}' found, "
            "skipping 'age'"
        )
        return result

    result["age"] = age.clip(lower=0).round().astype("Int64")
    return result


def detect_incomplete_countries(df: pd.DataFrame, fields: FieldMap) -> list[str]:
    """Return countries where no record has an fht value."""
    has_fht = df[fields.fht].notna().groupby(df[fields.country]).any()
    return sorted(str(c) for c in has_fht[~has_fht].index)


def exclude_countries(
    df: pd.DataFrame,
    country_field: str,
    excluded: dict[str, str],
) -> pd.DataFrame:
    """
    Drop records of excluded countries.

    Args:
        df: Microdata with string country codes
        country_field: Country column
        excluded: Country code -> reason for exclusion

    Returns:
        New DataFrame without the excluded countries
    """
    present = set(df[country_field].unique())
    for code, reason in sorted(excluded.items()):
        if code in present:
            warnings.warn(f"Excluding country {code}: {reason}")
    mask = ~df[country_field].isin(list(excluded))
    return df.loc[mask].reset_index(drop=True)


def load_records(
    config: PipelineConfig,
    raw: Optional[pd.DataFrame] = None,
    verbose: bool = True,
) -> pd.DataFrame:
    """
    Load, normalize and filter microdata.

    Args:
        config: Pipeline configuration
        raw: Already-loaded microdata (read from config.input_path if None)
        verbose: Print progress

    Returns:
        Normalized DataFrame restricted to the included countries

    Raises:
        MissingFieldError: If a required field is absent or incomplete
        ValueError: If weights are not strictly positive
    """
    fields = config.fields

    if raw is None:
        if verbose:
            print(f"Loading microdata from {config.input_path}")
        raw = read_microdata(config.input_path)
    if verbose:
        print(f"  Loaded {len(raw):,} records")

    df = normalize_columns(raw)
    absent = SurveySchema.from_fields(fields, config.weight_field).check(df)

    df = derive_demographics(df, fields, config.reference_year, absent=absent)
    df[fields.country] = df[fields.country].where(
        df[fields.country].isna(), df[fields.country].astype(str).str.strip()
    )

    excluded = {code: "configured exclusion" for code in config.excluded_countries}
    if config.detect_excluded_countries:
        for code in detect_incomplete_countries(df, fields):
            excluded.setdefault(code, f"no values for '{fields.fht}'")

    df = exclude_countries(df, fields.country, excluded)
    validate_records(df, fields, config.weight_field)
    df[config.weight_field] = pd.to_numeric(df[config.weight_field])

    if verbose:
        n_countries = df[fields.country].nunique()
        print(f"  Kept {len(df):,} records in {n_countries} countries")

    return df


def generate_synthetic_survey(
    n_samples: int = 5000,
    countries: Optional[list[str]] = None,
    incomplete_countries: Optional[list[str]] = None,
    year: int = 2023,
    seed: Optional[int] = None,
) -> pd.DataFrame:
    """
    Generate synthetic microdata shaped like an EU-SILC extract.

    Column names are upper-case, as in the distributed files.

    Args:
        n_samples: Number of person records
        countries: Country codes to sample from
        incomplete_countries: Countries whose FHT column is left empty
        year: Survey year (birth years are drawn relative to it)
        seed: Random seed for reproducibility

    Returns:
        DataFrame with raw (un-normalized) survey columns
    """
    rng = np.random.default_rng(seed)
    if countries is None:
        countries = SYNTHETIC_COUNTRIES

    country = rng.choice(countries, n_samples)

    # HX060 household types 5-13, skewed towards couples
    hh_type = rng.choice(
        np.arange(5, 14),
        n_samples,
        p=[0.16, 0.14, 0.10, 0.06, 0.05, 0.15, 0.16, 0.08, 0.10],
    )
    fht = rng.integers(1, 13, n_samples).astype(float)
    if incomplete_countries:
        fht[np.isin(country, incomplete_countries)] = np.nan

    # Single parents and single adults carry higher poverty risk
    poverty_rate = np.where(np.isin(hh_type, [5, 9]), 0.30, 0.12)
    poverty = (rng.random(n_samples) < poverty_rate).astype(int)
    deprivation = (rng.random(n_samples) < poverty_rate / 3).astype(int)

    return pd.DataFrame({
        "RB020": country,
        "RB050": rng.gamma(shape=4, scale=250, size=n_samples) + 1,
        "RB090": rng.integers(1, 3, n_samples),
        "RB080": year - rng.integers(0, 90, n_samples),
        "HX060": hh_type,
        "HHTYP": rng.integers(1, 21, n_samples),
        "FHT": fht,
        "HX080": poverty,
        "SEV_DEP": deprivation,
    })
