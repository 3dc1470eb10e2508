from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional

import bamnostic as bn

from .miMapClasses import AlignmentRecord


def _get_read_name(aln) -> str:
    # Different libs/files expose different attributes
    for attr in ("query_name", "qname", "read_name"):
        v = getattr(aln, attr, None)
        if v:
            return v
    return ""


def _get_sequence(aln) -> Optional[str]:
    for attr in ("query_sequence", "seq"):
        v = getattr(aln, attr, None)
        if v:
            return str(v)
    return None


def _cigar_is_empty(aln) -> bool:
    cigar = getattr(aln, "cigarstring", None)
    if cigar is None:
        cigar = getattr(aln, "cigar", None)
    return not cigar or cigar == "*"


def _to_record(aln) -> AlignmentRecord:
    """Keep only what the counters need from a bamnostic alignment."""
    return AlignmentRecord(
        reference_name=getattr(aln, "reference_name", None),
        read_id=_get_read_name(aln),
        query_sequence=_get_sequence(aln),
        cigar_is_empty=_cigar_is_empty(aln),
        position=getattr(aln, "pos", 0) or 0,
        strand="-" if getattr(aln, "is_reverse", False) else "+",
        quality=getattr(aln, "mapq", 0) or 0,
    )


def iter_alignments(bam_path: str | Path) -> Iterator[AlignmentRecord]:
    """
    Stream a BAM in on-disk order. The file is closed when the iterator is
    exhausted, closed, or garbage collected, so callers that stop early
    should close the generator (or wrap it in contextlib.closing).
    """
    bam_path = Path(bam_path)
    if not bam_path.exists():
        raise FileNotFoundError(f"BAM not found: {bam_path}")
    bam = bn.AlignmentFile(str(bam_path), "rb")
    try:
        for aln in bam:
            yield _to_record(aln)
    finally:
        bam.close()
