"""
trackcal/io/results.py

JSON persistence of tool-tip calibration results.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Union

import numpy as np

from trackcal.estimation.tooltip import ToolTipResult


def tooltip_result_to_dict(result: ToolTipResult) -> dict:
    return {
        "world_point": np.asarray(result.world_point, dtype=np.float64).tolist(),
        "local_offset": np.asarray(result.local_offset, dtype=np.float64).tolist(),
        "num_inliers": int(result.num_inliers),
        "inlier_mask": np.asarray(result.inlier_mask, dtype=bool).tolist(),
    }


def save_tooltip_result(path: Union[str, Path], result: ToolTipResult) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    # NaN (no consensus) is written as null
    d = tooltip_result_to_dict(result)
    for k in ("world_point", "local_offset"):
        d[k] = [None if not np.isfinite(v) else v for v in d[k]]
    path.write_text(json.dumps(d, indent=2), encoding="utf-8")


def load_tooltip_result(path: Union[str, Path]) -> ToolTipResult:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    d = json.loads(path.read_text(encoding="utf-8"))

    def vec(key: str) -> np.ndarray:
        return np.array([np.nan if v is None else v for v in d[key]], dtype=np.float64)

    return ToolTipResult(
        world_point=vec("world_point"),
        local_offset=vec("local_offset"),
        num_inliers=int(d["num_inliers"]),
        inlier_mask=np.array(d.get("inlier_mask", []), dtype=bool),
    )
