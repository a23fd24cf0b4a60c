from __future__ import annotations

from typing import Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from mixture_review.config import Wave


def invariance_out_text(
    chisq: float,
    df: int,
    cfi: float,
    tli: float,
    rmsea: Tuple[float, float, float] = (0.040, 0.030, 0.050),
    srmr: Optional[float] = 0.030,
    parameters: int = 40,
    chisq_p: float = 0.0,
    wrmr: Optional[float] = None,
) -> str:
    srmr_block = (
        "SRMR (Standardized Root Mean Square Residual)\n\n"
        f"          Value                              {srmr:.3f}\n\n"
        if srmr is not None
        else ""
    )
    wrmr_block = (
        "WRMR (Weighted Root Mean Square Residual)\n\n"
        f"          Value                              {wrmr:.3f}\n\n"
        if wrmr is not None
        else ""
    )
    return (
        "Mplus VERSION 8.6\n"
        "MUTHEN & MUTHEN\n\n"
        "THE MODEL ESTIMATION TERMINATED NORMALLY\n\n"
        "MODEL FIT INFORMATION\n\n"
        f"Number of Free Parameters                       {parameters}\n\n"
        "Chi-Square Test of Model Fit\n\n"
        f"          Value                            {chisq:.3f}*\n"
        f"          Degrees of Freedom                    {df}\n"
        f"          P-Value                           {chisq_p:.4f}\n\n"
        "*   The chi-square value for MLM, MLMV, MLR, ULSMV, WLSM and WLSMV cannot be used\n"
        "    for chi-square difference testing in the regular way.\n\n"
        "RMSEA (Root Mean Square Error Of Approximation)\n\n"
        f"          Estimate                           {rmsea[0]:.3f}\n"
        f"          90 Percent C.I.                    {rmsea[1]:.3f}  {rmsea[2]:.3f}\n"
        "          Probability RMSEA <= .05           1.000\n\n"
        "CFI/TLI\n\n"
        f"          CFI                                {cfi:.3f}\n"
        f"          TLI                                {tli:.3f}\n\n"
        "Chi-Square Test of Model Fit for the Baseline Model\n\n"
        "          Value                          98765.432\n"
        "          Degrees of Freedom                   999\n"
        "          P-Value                           0.0000\n\n"
        f"{srmr_block}"
        f"{wrmr_block}"
        "MODEL RESULTS\n\n"
        "                                                    Two-Tailed\n"
        "                    Estimate       S.E.  Est./S.E.    P-Value\n\n"
        " SC3      BY\n"
        "    SC3THAC            1.000      0.000    999.000    999.000\n"
    )


def mixture_out_text(
    ll: float,
    parameters: int,
    aic: float,
    bic: float,
    sabic: float,
    entropy: Optional[float] = None,
    counts: Sequence[Tuple[int, float]] = (),
    blrt_p: Optional[float] = None,
) -> str:
    text = (
        "Mplus VERSION 8.6\n\n"
        "MODEL FIT INFORMATION\n\n"
        f"Number of Free Parameters                       {parameters}\n\n"
        "Loglikelihood\n\n"
        f"          H0 Value                      {ll:.3f}\n"
        "          H0 Scaling Correction Factor      1.2345\n"
        "            for MLR\n\n"
        "Information Criteria\n\n"
        f"          Akaike (AIC)                   {aic:.3f}\n"
        f"          Bayesian (BIC)                 {bic:.3f}\n"
        f"          Sample-Size Adjusted BIC       {sabic:.3f}\n"
        "            (n* = (n + 2) / 24)\n\n"
    )
    if counts:
        text += (
            "FINAL CLASS COUNTS AND PROPORTIONS FOR THE LATENT CLASSES\n"
            "BASED ON THEIR MOST LIKELY LATENT CLASS MEMBERSHIP\n\n"
            "Class Counts and Proportions\n\n"
            "    Latent\n"
            "   Classes\n\n"
        )
        for i, (count, prop) in enumerate(counts, start=1):
            text += f"       {i}           {count:d}          {prop:.5f}\n"
        text += "\n"
    if entropy is not None:
        text += "CLASSIFICATION QUALITY\n\n" f"     Entropy                         {entropy:.3f}\n\n"
    text += "MODEL RESULTS\n\n"
    if blrt_p is not None:
        text += (
            "TECHNICAL 14 OUTPUT\n\n"
            "     PARAMETRIC BOOTSTRAPPED LIKELIHOOD RATIO TEST FOR 2 (H0) VERSUS 3 CLASSES\n\n"
            "          H0 Loglikelihood Value                    -1234.567\n"
            "          2 Times the Loglikelihood Difference         123.456\n"
            "          Difference in the Number of Parameters             4\n"
            f"          Approximate P-Value                           {blrt_p:.4f}\n"
            "          Successful Bootstrap Draws                        50\n"
        )
    return text


def make_wave_data(observed: np.ndarray, waves: Sequence[Wave], seed: int = 0) -> pd.DataFrame:
    """Subjects x waves boolean matrix -> indicator data with NaN where not observed."""
    rng = np.random.default_rng(seed)
    columns = {}
    for j, wave in enumerate(waves):
        for col in wave.columns:
            values = rng.integers(0, 3, size=observed.shape[0]).astype(float)
            values[~observed[:, j]] = np.nan
            columns[col] = values
    return pd.DataFrame(columns)
