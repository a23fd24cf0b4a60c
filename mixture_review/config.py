from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Tuple

NA_TOKENS: Tuple[str, ...] = ("-9999", "*", ".")

WAVE_AGES: Tuple[int, ...] = (3, 5, 7, 11, 14, 17)

# Self-control items rated at every wave (the lying item is not in the measurement model)
SC_ITEMS: Tuple[str, ...] = ("thac", "tcom", "obey", "dist", "temp", "rest", "fidg")

# Column order of recoded_only_sc_pa_cov.dat
VAR_NAMES: Tuple[str, ...] = (
    "pttype2", "nh2", "bovwt1", "covwt1", "dovwt1", "eovwt1", "fovwt1", "govwt1",
    "sptn00", "sc3thac", "sc3tcom", "sc3obey", "sc3dist", "sc3temp", "sc3rest",
    "sc3fidg", "sc5thac", "sc5tcom", "sc5obey", "sc5dist", "sc5temp", "sc5rest",
    "sc5fidg", "sc5lyin", "sc7thac", "sc7tcom", "sc7obey", "sc7dist", "sc7temp",
    "sc7rest", "sc7fidg", "sc7lyin", "sc11thac", "sc11tcom", "sc11obey", "sc11dist",
    "sc11temp", "sc11rest", "sc11fidg", "sc11lyin", "sc14thac", "sc14tcom",
    "sc14obey", "sc14dist", "sc14temp", "sc14rest", "sc14fidg", "sc14lyin",
    "sc17thac", "sc17tcom", "sc17obey", "sc17dist", "sc17temp", "sc17rest",
    "sc17fidg", "sc17lyin", "ignore3", "smack3", "shout3", "bedroom3", "treats3",
    "telloff3", "bribe3", "ignore5", "smack5", "shout5", "bedroom5", "treats5",
    "telloff5", "bribe5", "reason5", "rindoor5", "dinner5", "close5", "read5",
    "story5", "music5", "paint5", "active5", "games5", "park5", "ignore7",
    "smack7", "shout7", "bedroom7", "treats7", "telloff7", "bribe7", "reason7",
    "rindoor7", "dinner7", "close7", "read7", "story7", "music7", "paint7",
    "active7", "games7", "park7", "tvrules7", "bedroom11", "treats11", "reason11",
    "close11", "active11", "games11", "pwhere14", "pwho14", "pwhat14", "cmwhere14",
    "cmwho14", "cmwhat14", "cmwhere17", "cmtback17", "pwhere17", "ptback17",
    "livewp17", "pedu", "bpedu", "sex", "race", "brace", "bmarried", "incomec",
    "incomel", "incomef", "lbw", "namhapna0", "namunfaa0", "nambrusa0", "namfeeda0",
    "naminjua0", "nambatha0", "namwarya0", "nambshya0", "namfreta0", "namsleea0",
    "nammilka0", "namsltia0", "namnapsa0", "namsofoa0", "inftempr", "inftemp",
    "dfpw", "dupd", "dupw", "hfae", "coga", "scoga", "age3", "age5", "age7",
    "age11", "age14", "age17", "mcsid",
)

# Column order of the SAVEDATA file written by the 3-class growth mixture model
CLASS_FILE_COLUMNS: Tuple[str, ...] = (
    "SC_3", "SC_5", "SC_7", "SC_11", "SC_14", "SC_17",
    "GOVWT1", "MCSID", "PTTYPE2", "SPTN00",
    "CPROB1", "CPROB2", "CPROB3", "CLASS",
)

MISSINGNESS_COVARIATES: Tuple[str, ...] = (
    "sex", "race", "brace", "bmarried", "incomef", "lbw", "pedu", "bpedu",
    "scoga", "hfae", "inftemp",
)

INVARIANCE_MODELS: Tuple[str, ...] = (
    "configural_invariance_baseline.out",
    "threshold_invariance.out",
    "strong_invariance.out",
)


@dataclass(frozen=True)
class Wave:
    """One measurement occasion and the indicator columns observed at it."""

    label: str
    age: int
    columns: Tuple[str, ...]


def default_waves(items: Sequence[str] = SC_ITEMS, ages: Sequence[int] = WAVE_AGES) -> Tuple[Wave, ...]:
    return tuple(
        Wave(label=f"Wave {i}", age=age, columns=tuple(f"sc{age}{item}" for item in items))
        for i, age in enumerate(ages, start=1)
    )


@dataclass(frozen=True)
class FitComparisonConfig:
    """
    Configuration for the Mplus fit-comparison extractor.

    Assumptions:
    - Invariance models live in one directory and are compared in the listed
      order (configural -> threshold -> strong).
    - Mixture enumeration runs are named <mixture_pattern><k>.out, one file per
      number of latent classes.
    """

    invariance_dir: Path
    mixture_dir: Path
    output_dir: Path

    invariance_models: Sequence[str] = INVARIANCE_MODELS
    mixture_pattern: str = "sc_gmm_lgbm_c"

    # Advisory thresholds for the BIC-selected model
    entropy_threshold: float = 0.60
    min_class_proportion: float = 0.05

    # Level at which a chi-square difference flags deterioration
    alpha: float = 0.05


@dataclass(frozen=True)
class MissingDataConfig:
    """
    Configuration for the missing-data diagnostics.

    Assumptions:
    - Headerless, whitespace-delimited Mplus data file whose columns follow
      `column_names` exactly.
    - `waves` is ordered; attrition semantics depend on that order.
    """

    data_path: Path
    output_dir: Path

    column_names: Sequence[str] = VAR_NAMES
    waves: Tuple[Wave, ...] = field(default_factory=default_waves)
    covariates: Sequence[str] = MISSINGNESS_COVARIATES

    # Covariates with fewer observed values are not compared
    min_observed: int = 100
    alpha: float = 0.05

    na_tokens: Tuple[str, ...] = NA_TOKENS


@dataclass(frozen=True)
class ValidationConfig:
    """
    Configuration for the descriptive validation of trajectory classes.

    Assumptions:
    - The class file is the Mplus SAVEDATA output (factor-score summaries per
      wave, design variables, posterior probabilities, modal CLASS).
    - Subjects are joined on `id_column`, which must be unique in the
      covariate data.
    """

    class_file: Path
    data_path: Path
    output_dir: Path

    column_names: Sequence[str] = VAR_NAMES
    class_columns: Sequence[str] = CLASS_FILE_COLUMNS

    continuous_vars: Sequence[str] = ("scoga", "pedu", "bpedu", "incomef", "hfae")
    categorical_vars: Sequence[str] = ("sex", "race", "bmarried", "lbw")
    key_outcome: Optional[str] = "scoga"

    trajectory_columns: Sequence[str] = ("SC_3", "SC_5", "SC_7", "SC_11", "SC_14", "SC_17")
    ages: Sequence[int] = WAVE_AGES

    id_column: str = "mcsid"
    class_column: str = "CLASS"

    na_tokens: Tuple[str, ...] = NA_TOKENS
