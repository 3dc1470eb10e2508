from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterator

from Bio import SeqIO

from .miMapClasses import SequenceRecord
from .utils import _open_text_auto


def iter_fasta(path: str | Path) -> Iterator[SequenceRecord]:
    """Yield SequenceRecords in file order. Plain or .gz FASTA."""
    with _open_text_auto(path) as fh:
        for rec in SeqIO.parse(fh, "fasta"):
            yield SequenceRecord(id=rec.id or "", sequence=str(rec.seq))


def load_mature_fasta(
    path: str | Path,
    logger: logging.Logger | None = None,
) -> Dict[str, str]:
    """
    Read mature miRNA sequences (e.g. miRBase mature.fa) into id -> sequence.

    Records without an identifier or without sequence are skipped; a repeated
    identifier keeps the last sequence seen.
    """
    sequences: Dict[str, str] = {}
    skipped = 0
    for rec in iter_fasta(path):
        if not rec.id or not rec.sequence:
            skipped += 1
            continue
        sequences[rec.id] = rec.sequence

    if logger:
        logger.info(f"Mature sequences loaded from {path}: {len(sequences)} ids")
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Records skipped for missing id or sequence: {skipped}")
            ids = list(sequences)
            for i in ids[:5] + ids[-5:]:
                logger.debug(f"  {i}\t{sequences[i]}")
    return sequences
