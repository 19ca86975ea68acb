"""
trackcal/io/pointcloud_io.py

ASCII PLY files for reconstructed point lists (vertices only, x/y/z doubles).
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, TextIO, Tuple, Union

import numpy as np


def write_ply(
    path: Union[str, Path],
    points: np.ndarray,
    comments: Optional[Sequence[str]] = None,
) -> None:
    """
    Write (N,3) points, values printed with full float64 precision.
    Parent directories are created.
    """
    X = np.asarray(points, dtype=np.float64)
    if X.ndim != 2 or X.shape[1] != 3:
        raise ValueError(f"points must have shape (N,3), got {X.shape}")

    header = ["ply", "format ascii 1.0"]
    header += [f"comment {c}" for c in (comments or [])]
    header += [f"element vertex {X.shape[0]}"]
    header += [f"property double {axis}" for axis in "xyz"]
    header += ["end_header"]

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        f.write("\n".join(header) + "\n")
        for x, y, z in X:
            f.write(f"{float(x)!r} {float(y)!r} {float(z)!r}\n")


def _read_header(f: TextIO) -> Tuple[int, List[str]]:
    """Vertex count and vertex property names; stops after end_header."""
    if f.readline().strip() != "ply":
        raise ValueError("Not a PLY file (missing 'ply' magic).")

    count: Optional[int] = None
    props: List[str] = []
    element = None
    for line in f:
        parts = line.split()
        if not parts or parts[0] == "comment":
            continue
        if parts[0] == "end_header":
            if count is None:
                raise ValueError("PLY file has no vertex element.")
            return count, props
        if parts[0] == "format" and parts[1:2] != ["ascii"]:
            raise ValueError(f"Only ASCII PLY is supported, got '{line.strip()}'")
        if parts[0] == "element":
            element = parts[1]
            if element == "vertex":
                count = int(parts[2])
        elif parts[0] == "property" and element == "vertex":
            props.append(parts[-1])
    raise ValueError("PLY header is not terminated by end_header.")


def read_ply(path: Union[str, Path]) -> np.ndarray:
    """(N,3) float64 vertex positions; other vertex properties are ignored."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"PLY not found: {path}")

    with path.open("r", encoding="utf-8", errors="ignore") as f:
        count, props = _read_header(f)
        missing = [a for a in "xyz" if a not in props]
        if missing:
            raise ValueError(f"PLY vertices lack {missing}; properties are {props}")
        cols = [props.index(a) for a in "xyz"]

        X = np.empty((count, 3), dtype=np.float64)
        for i in range(count):
            parts = f.readline().split()
            if len(parts) < len(props):
                raise ValueError(f"PLY vertex {i} is truncated.")
            X[i] = [float(parts[c]) for c in cols]
    return X
