"""
Reading fit summaries from Mplus .out files.

Only the scalar fit fields needed by the comparison tables are extracted. The
text layout is treated as a versioned schema behind `read_model_summary`:
callers receive a `ModelSummary` and never touch the raw report.

Layout relied upon (Mplus 8):

    MODEL FIT INFORMATION

    Number of Free Parameters                       31

    Loglikelihood

              H0 Value                      -12345.678

    Information Criteria

              Akaike (AIC)                   24753.356
              Bayesian (BIC)                 24932.101
              Sample-Size Adjusted BIC       24833.612

    Chi-Square Test of Model Fit

              Value                            123.456*
              Degrees of Freedom                    42
    ...
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

ReportFamily = Literal["invariance", "mixture"]

REQUIRED_FIELDS: Dict[str, Tuple[str, ...]] = {
    "invariance": ("chisq", "chisq_df", "cfi", "tli", "rmsea"),
    "mixture": ("log_likelihood", "parameters", "aic", "bic", "sabic"),
}

_NUMBER = r"-?\d+(?:\.\d+)?(?:[Ee][-+]?\d+)?"
_ENTRY_RE = re.compile(rf"^\s+(?P<label>\S.*?)\s{{2,}}(?P<values>{_NUMBER}\*?(?:\s+{_NUMBER})*)\s*$")
_FREE_PARAMS_RE = re.compile(r"^\s*Number of Free Parameters\s+(\d+)\s*$", re.MULTILINE)
_CLASS_ROW_RE = re.compile(rf"^\s+(\d+)\s+({_NUMBER})\s+({_NUMBER})\s*$")
_BLRT_RE = re.compile(
    rf"PARAMETRIC BOOTSTRAPPED LIKELIHOOD RATIO TEST.*?Approximate P-Value\s+({_NUMBER})",
    re.DOTALL,
)
_MOST_LIKELY_HEADING = "BASED ON THEIR MOST LIKELY LATENT CLASS MEMBERSHIP"


class MalformedReportError(ValueError):
    """An Mplus report lacks a field required for its report family."""


@dataclass(frozen=True)
class ClassCount:
    label: int
    count: float
    proportion: float


@dataclass(frozen=True)
class ModelSummary:
    name: str
    path: str

    parameters: Optional[int] = None
    log_likelihood: Optional[float] = None
    aic: Optional[float] = None
    bic: Optional[float] = None
    sabic: Optional[float] = None

    chisq: Optional[float] = None
    chisq_df: Optional[float] = None
    chisq_p: Optional[float] = None
    rmsea: Optional[float] = None
    rmsea_ci_lower: Optional[float] = None
    rmsea_ci_upper: Optional[float] = None
    cfi: Optional[float] = None
    tli: Optional[float] = None
    srmr: Optional[float] = None
    wrmr: Optional[float] = None

    entropy: Optional[float] = None
    blrt_p: Optional[float] = None
    class_counts: Tuple[ClassCount, ...] = ()

    @property
    def smallest_class_proportion(self) -> Optional[float]:
        if not self.class_counts:
            return None
        return min(c.proportion for c in self.class_counts)

    @property
    def smallest_class_n(self) -> Optional[float]:
        if not self.class_counts:
            return None
        return min(c.count for c in self.class_counts)


def _parse_blocks(text: str) -> Dict[str, Dict[str, List[float]]]:
    """
    Group indented `label   value [value ...]` lines under the preceding
    unindented heading. The first occurrence of a heading wins.
    """
    blocks: Dict[str, Dict[str, List[float]]] = {}
    current: Optional[Dict[str, List[float]]] = None

    for line in text.splitlines():
        if not line.strip():
            continue
        if not line[0].isspace():
            heading = line.strip()
            if heading in blocks:
                current = None
            else:
                current = blocks.setdefault(heading, {})
            continue
        if current is None:
            continue
        m = _ENTRY_RE.match(line)
        if m is None:
            continue
        label = m.group("label").strip()
        if label in current:
            continue
        current[label] = [float(v.rstrip("*")) for v in m.group("values").split()]
    return blocks


def _block(blocks: Dict[str, Dict[str, List[float]]], prefix: str, exact: bool = False) -> Dict[str, List[float]]:
    for heading, entries in blocks.items():
        if (heading == prefix) if exact else heading.startswith(prefix):
            return entries
    return {}


def _value(entries: Dict[str, List[float]], label: str, position: int = 0) -> Optional[float]:
    values = entries.get(label)
    if values is None or len(values) <= position:
        return None
    return values[position]


def _parse_class_counts(text: str) -> Tuple[ClassCount, ...]:
    idx = text.find(_MOST_LIKELY_HEADING)
    if idx < 0:
        return ()

    rows: List[ClassCount] = []
    for line in text[idx + len(_MOST_LIKELY_HEADING):].splitlines():
        if not line.strip():
            if rows:
                break
            continue
        m = _CLASS_ROW_RE.match(line)
        if m is None:
            if rows:
                break
            continue
        rows.append(ClassCount(label=int(m.group(1)), count=float(m.group(2)), proportion=float(m.group(3))))
    return tuple(rows)


def parse_model_summary(text: str, name: str, path: str = "") -> ModelSummary:
    """Extract the fit fields from the text of one Mplus output file."""
    blocks = _parse_blocks(text)

    free = _FREE_PARAMS_RE.search(text)
    chisq = _block(blocks, "Chi-Square Test of Model Fit", exact=True)
    rmsea = _block(blocks, "RMSEA")
    info = _block(blocks, "Information Criteria")
    blrt = _BLRT_RE.search(text)

    return ModelSummary(
        name=name,
        path=path,
        parameters=int(free.group(1)) if free else None,
        log_likelihood=_value(_block(blocks, "Loglikelihood", exact=True), "H0 Value"),
        aic=_value(info, "Akaike (AIC)"),
        bic=_value(info, "Bayesian (BIC)"),
        sabic=_value(info, "Sample-Size Adjusted BIC"),
        chisq=_value(chisq, "Value"),
        chisq_df=_value(chisq, "Degrees of Freedom"),
        chisq_p=_value(chisq, "P-Value"),
        rmsea=_value(rmsea, "Estimate"),
        rmsea_ci_lower=_value(rmsea, "90 Percent C.I."),
        rmsea_ci_upper=_value(rmsea, "90 Percent C.I.", position=1),
        cfi=_value(_block(blocks, "CFI/TLI"), "CFI"),
        tli=_value(_block(blocks, "CFI/TLI"), "TLI"),
        srmr=_value(_block(blocks, "SRMR"), "Value"),
        wrmr=_value(_block(blocks, "WRMR"), "Value"),
        entropy=_value(_block(blocks, "CLASSIFICATION QUALITY"), "Entropy"),
        blrt_p=float(blrt.group(1)) if blrt else None,
        class_counts=_parse_class_counts(text),
    )


def validate_summary(summary: ModelSummary, family: ReportFamily, n_classes: Optional[int] = None) -> ModelSummary:
    required = list(REQUIRED_FIELDS[family])
    if family == "mixture" and n_classes is not None and n_classes > 1:
        required.append("entropy")

    missing = [f for f in required if getattr(summary, f) is None]
    if missing:
        raise MalformedReportError(f"{summary.path or summary.name}: missing {', '.join(missing)}")
    return summary


def read_model_summary(path: Path | str, family: ReportFamily, n_classes: Optional[int] = None) -> ModelSummary:
    """
    Parse and validate one Mplus output file.

    Raises FileNotFoundError when the file does not exist and
    MalformedReportError when a field required by `family` is absent.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8", errors="replace")
    name = re.sub(r"\.out$", "", path.name, flags=re.IGNORECASE)
    return validate_summary(parse_model_summary(text, name=name, path=str(path)), family, n_classes)


def class_count_from_filename(filename: str, pattern: str) -> Optional[int]:
    m = re.fullmatch(rf"{re.escape(pattern)}(\d+)\.out", filename, flags=re.IGNORECASE)
    return int(m.group(1)) if m else None
