from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Union

import numpy as np
import yaml

_NUMBER = re.compile(r"[-+]?(?:\d*\.\d+|\d+\.?)(?:[eE][-+]?\d+)?")


def extract_floats(text: str) -> List[float]:
    """All numbers in `text`, including scientific notation."""
    return [float(x) for x in _NUMBER.findall(text)]


def extract_float_rows(text: str) -> List[List[float]]:
    """
    One list of numbers per line; '#' starts a comment, lines without
    numbers are skipped.
    """
    rows = []
    for line in text.splitlines():
        vals = extract_floats(line.split("#", 1)[0])
        if vals:
            rows.append(vals)
    return rows


def _read_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="ignore")


_LOADERS: Dict[str, Callable[[Path], Any]] = {
    ".json": lambda p: json.loads(_read_text(p)),
    ".yaml": lambda p: yaml.safe_load(_read_text(p)),
    ".yml": lambda p: yaml.safe_load(_read_text(p)),
    ".npy": lambda p: np.load(p, allow_pickle=False),
}


def load_data(path: Union[str, Path]) -> Any:
    """
    Load a file by extension without interpreting it:
    .json/.yaml/.yml give the parsed object, .npy an ndarray, anything else
    the raw text. Callers decode the result.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"File not found: {path}")
    return _LOADERS.get(path.suffix.lower(), _read_text)(path)
