from __future__ import annotations

from pathlib import Path
from typing import Tuple

import numpy as np
import pytest

from mixture_review.config import Wave

from builders import make_wave_data


@pytest.fixture
def write_report(tmp_path):
    def _write(name: str, text: str, subdir: str = "") -> Path:
        directory = tmp_path / subdir if subdir else tmp_path
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def small_waves() -> Tuple[Wave, ...]:
    """Six waves with two items each."""
    ages = (3, 5, 7, 11, 14, 17)
    return tuple(
        Wave(label=f"Wave {i}", age=age, columns=(f"sc{age}a", f"sc{age}b"))
        for i, age in enumerate(ages, start=1)
    )


@pytest.fixture
def dropout_scenario(small_waves):
    """20 subjects: 2 observed at all six waves, 18 missing from wave 4 onward."""
    observed = np.ones((20, 6), dtype=bool)
    observed[2:, 3:] = False
    return make_wave_data(observed, small_waves)
