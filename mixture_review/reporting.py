from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

RULE = "=" * 80
THIN_RULE = "-" * 80


def print_banner(title: str) -> None:
    print()
    print(RULE)
    print(title)
    print(RULE)


def print_section(title: str, underline: str = "-") -> None:
    print()
    print(title)
    print(underline * len(title))


def print_table(table: pd.DataFrame, colalign: Optional[Sequence[str]] = None, floatfmt: str = ".2f") -> None:
    """Print a table as markdown (the console counterpart of the CSV artifact)."""
    if table.empty:
        print("(no rows)")
        return
    kwargs = {"index": False, "floatfmt": floatfmt}
    if colalign is not None:
        kwargs["colalign"] = tuple(colalign)
    print(table.to_markdown(**kwargs))


def print_guidelines(title: str, lines: Sequence[str]) -> None:
    print()
    print(title)
    for line in lines:
        print(f"  - {line}")


def save_csv(table: pd.DataFrame, path: Path | str) -> Path:
    path = Path(path)
    table.to_csv(path, index=False)
    print(f"Saved: {path}")
    return path
