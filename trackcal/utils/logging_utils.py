import logging
import time
from contextlib import contextmanager
from typing import Optional

ROOT_LOGGER = "trackcal"


def make_logger(name: str = ROOT_LOGGER, level: int = logging.INFO) -> logging.Logger:
    """
    Logger with a single stderr handler. Safe to call repeatedly; only the
    level changes on later calls.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)
    return logger


def verbosity_level(verbose: bool) -> int:
    return logging.INFO if verbose else logging.WARNING


@contextmanager
def timed(logger: Optional[logging.Logger], msg: str, level: int = logging.INFO):
    """Log `msg` on entry and its wall time on exit. No-op without a logger."""
    if logger is None:
        yield
        return
    t0 = time.perf_counter()
    logger.log(level, f"{msg} ...")
    yield
    logger.log(level, f"{msg} done in {time.perf_counter() - t0:.2f}s")
