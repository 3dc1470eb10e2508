from __future__ import annotations

import gzip
import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, TextIO

import psutil


def _make_logger(name: str, level: str = "INFO") -> logging.Logger:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    logger.setLevel(lvl)
    return logger


def _get_memory_usage() -> float:
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024  # Current memory usage in MB


def _open_text_auto(path: str | Path) -> TextIO:
    p = Path(path)
    if p.suffix.lower() == ".gz":
        return gzip.open(p, "rt", encoding="utf-8", errors="replace")
    return open(p, "rt", encoding="utf-8", errors="replace")


@contextmanager
def partial_output(out_path: str | Path) -> Iterator[TextIO]:
    """
    Write to '<out>.tmp' and move it over 'out_path' only when the block
    finishes cleanly. On any exception the temporary file is removed and the
    exception re-raised, so no half-written output is left behind.
    """
    outp = Path(out_path)
    outp.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = outp.with_name(outp.name + ".tmp")
    fh = open(tmp_path, "w", encoding="utf-8")
    try:
        yield fh
    except BaseException:
        fh.close()
        tmp_path.unlink(missing_ok=True)
        raise
    fh.close()
    os.replace(tmp_path, outp)
