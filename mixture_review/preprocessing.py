from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import NA_TOKENS, Wave

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadReport:
    path: str
    n_rows: int
    n_columns: int
    n_missing_cells: int


def read_mplus_table(
    path: Path | str,
    column_names: Sequence[str],
    na_tokens: Tuple[str, ...] = NA_TOKENS,
) -> tuple[pd.DataFrame, LoadReport]:
    """
    Read a headerless, whitespace-delimited Mplus data file.
    - Maps the missing-value sentinels (tokens and their numeric form) to np.nan
    - Requires the file to have exactly one column per name
    """
    column_names = list(column_names)
    df = pd.read_csv(path, sep=r"\s+", header=None, na_values=list(na_tokens), dtype=str)

    if df.shape[1] != len(column_names):
        raise ValueError(
            f"{path}: expected {len(column_names)} columns, found {df.shape[1]}. "
            "Check the variable list against the NAMES statement of the Mplus input."
        )
    df.columns = column_names

    df = df.apply(pd.to_numeric, errors="coerce")
    numeric_sentinels = [float(tok) for tok in na_tokens if _is_number(tok)]
    if numeric_sentinels:
        df = df.replace(numeric_sentinels, np.nan)

    report = LoadReport(
        path=str(path),
        n_rows=int(df.shape[0]),
        n_columns=int(df.shape[1]),
        n_missing_cells=int(df.isna().sum().sum()),
    )
    return df, report


def _is_number(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def load_mplus_data(
    data_path: Path | str,
    var_names: Sequence[str],
    na_tokens: Tuple[str, ...] = NA_TOKENS,
) -> pd.DataFrame:
    print(f"Loading data from: {data_path}")
    data, report = read_mplus_table(data_path, var_names, na_tokens=na_tokens)
    print(f"Data loaded: {report.n_rows} observations, {report.n_columns} variables")
    return data


def load_class_assignments(
    class_file: Path | str,
    columns: Sequence[str],
    id_column: str = "mcsid",
    na_tokens: Tuple[str, ...] = NA_TOKENS,
) -> pd.DataFrame:
    """
    Read the Mplus SAVEDATA file with posterior probabilities and modal class.
    The identifier column is renamed to `id_column` so it joins with the
    covariate data.
    """
    print(f"Loading class assignments from: {class_file}")
    class_data, _ = read_mplus_table(class_file, columns, na_tokens=na_tokens)

    matches = [c for c in class_data.columns if c.lower() == id_column.lower()]
    if not matches:
        raise ValueError(f"{class_file}: no identifier column matching '{id_column}'")
    return class_data.rename(columns={matches[0]: id_column})


def merge_class_covariates(
    class_data: pd.DataFrame,
    full_data: pd.DataFrame,
    on: str = "mcsid",
) -> pd.DataFrame:
    """
    Left-join covariates onto the classified subjects by `on`.
    Rows without an identifier cannot be matched and are dropped from both sides.
    """
    class_missing = int(class_data[on].isna().sum())
    if class_missing:
        logger.warning("Dropping %d class rows with missing %s", class_missing, on)
        class_data = class_data[class_data[on].notna()]

    data_missing = int(full_data[on].isna().sum())
    if data_missing:
        logger.warning("Dropping %d covariate rows with missing %s", data_missing, on)
        full_data = full_data[full_data[on].notna()]

    duplicated = full_data[on][full_data[on].duplicated()].unique()
    if len(duplicated):
        raise ValueError(
            f"Identifier '{on}' is not unique in the covariate data "
            f"(first duplicates: {list(duplicated[:10])})"
        )

    merged = class_data.merge(full_data, on=on, how="left", suffixes=("", "_data"))
    print(f"Merged dataset: {merged.shape[0]} observations")
    return merged


def wave_completeness(data: pd.DataFrame, waves: Iterable[Wave]) -> pd.DataFrame:
    """Boolean matrix (subjects x waves): True when every item of the wave is observed."""
    waves = list(waves)
    return pd.DataFrame(
        {wave.label: data[list(wave.columns)].notna().all(axis=1) for wave in waves},
        index=data.index,
    )


def indicator_columns(waves: Iterable[Wave]) -> list[str]:
    return [col for wave in waves for col in wave.columns]


def assert_numeric_matrix(X: pd.DataFrame) -> None:
    non_numeric = [c for c in X.columns if not pd.api.types.is_numeric_dtype(X[c])]
    if non_numeric:
        raise TypeError(
            "Non-numeric indicators detected. The MCAR test requires numeric columns.\n"
            f"Non-numeric columns (first 20): {non_numeric[:20]}\n"
            "Check the missing-value tokens passed to the loader."
        )
