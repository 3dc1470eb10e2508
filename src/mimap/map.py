from __future__ import annotations

import re
import sys
import logging
from contextlib import closing
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, TextIO

from .alignments import iter_alignments
from .mappings import build
from .matching import approx_match_either
from .miMapClasses import AlignmentRecord, CrossReferenceIndex, MiMapConfig
from .sequences import load_mature_fasta
from .utils import _get_memory_usage, _make_logger, partial_output

# BAM references look like 'chr1_<ensembl id>' in the miRNA genome
CHR_PREFIX = re.compile(r"^chr\d+_")
PROGRESS_EVERY = 1_000_000


@dataclass
class MiMapResult:
    index: CrossReferenceIndex
    counts_path: Path
    trace_path: Path
    records: int
    lines: int


def strip_chr_prefix(reference_name: str) -> str:
    return CHR_PREFIX.sub("", reference_name, count=1)


def _as_dna(seq: str) -> str:
    # mature.fa is RNA, BAM reads are DNA
    return seq.upper().replace("U", "T")


def cross_reference(
    records: Iterable[AlignmentRecord],
    index: CrossReferenceIndex,
    *,
    max_edits: int = 1,
    max_records: Optional[int] = None,
    logger: logging.Logger | None = None,
) -> int:
    """
    Count reads against the mature children of the precursor they aligned to.

    Every child whose sequence matches the read (either way round, within
    'max_edits') gets +1, so one read may be counted against several matures
    of the same precursor. Returns the number of records consumed.
    """
    n_records = 0
    n_hits = 0
    reason_no_parent = 0
    reason_no_sequence = 0
    reason_no_match = 0

    for rec in records:
        if max_records is not None and n_records >= max_records:
            if logger:
                logger.info(f"Stopping after {max_records:,} alignments (debug cap)")
            break
        n_records += 1

        if logger and n_records % PROGRESS_EVERY == 0:
            logger.info(f"Processed {n_records:,} alignments... (Memory: {_get_memory_usage():.1f} MB)")

        if not rec.reference_name:
            reason_no_parent += 1
            continue
        children = index.get(strip_chr_prefix(rec.reference_name))
        if not children:
            reason_no_parent += 1
            continue
        if not rec.query_sequence:
            reason_no_sequence += 1
            continue
        read_seq = _as_dna(rec.query_sequence)

        found = False
        for child in children:
            if approx_match_either(read_seq, _as_dna(child.sequence), max_edits):
                child.count += 1
                n_hits += 1
                found = True
        if not found:
            reason_no_match += 1

    if logger:
        logger.info(f"Cross-referenced {n_records:,} alignments; {n_hits:,} mature increments")
        logger.debug(
            f"Reasons for uncounted alignments: no_parent={reason_no_parent}, "
            f"no_sequence={reason_no_sequence}, no_match={reason_no_match}"
        )
    return n_records


def cross_reference_bam(
    bam_path: str | Path,
    index: CrossReferenceIndex,
    *,
    debug: bool = False,
    max_records: int = 4000,
    max_edits: int = 1,
    logger: logging.Logger | None = None,
) -> int:
    """Stream 'bam_path' through cross_reference(); the BAM is closed on every exit path."""
    if logger:
        logger.info(f"Reading alignments from {bam_path}")
    with closing(iter_alignments(bam_path)) as records:
        return cross_reference(
            records,
            index,
            max_edits=max_edits,
            max_records=max_records if debug else None,
            logger=logger,
        )


def emit(index: CrossReferenceIndex, sink: TextIO) -> int:
    """Write '<mimat_id> <count>' per mature child; returns lines written."""
    lines = 0
    for children in index.values():
        for child in children:
            sink.write(f"{child.mimat_id} {child.count}\n")
            lines += 1
    return lines


def write_counts(index: CrossReferenceIndex, out_path: str | Path) -> int:
    with partial_output(out_path) as fh:
        return emit(index, fh)


def mi_map(config: MiMapConfig, logger: logging.Logger | None = None) -> MiMapResult:
    """
    Map the reads of a BAM aligned to miRNA precursors onto mature miRNAs:
    load mature sequences, collate them with the miRBase ID table, count the
    BAM against them, and write '<bam>_mature.count'.
    """
    if logger is None:
        logger = _make_logger("mimap.map")

    # Fail before writing anything when the BAM is missing
    if not Path(config.bam_path).exists():
        raise FileNotFoundError(f"BAM not found: {config.bam_path}")

    logger.debug(f"Python version: {sys.version}")
    logger.debug(f"Starting memory: {_get_memory_usage():.1f} MB")

    # Step 1: mature IDs ('mmu-miR-xxx-3p') and their ~21 nt sequences
    logger.info("Starting to read miRNA sequences.")
    sequence_db = load_mature_fasta(config.mature_fasta, logger=logger)

    # Step 2: bridge mature IDs to the parent precursor IDs
    logger.info("Starting to read miRNA mappings.")
    _pre_map, index = build(
        config.mirbase_data,
        sequence_db,
        species_prefix=config.species_prefix,
        trace_path=config.trace_path,
        logger=logger,
    )
    del _pre_map, sequence_db

    # Step 3: count reads, step 4: count table. The trace only survives a
    # finished run.
    try:
        records = cross_reference_bam(
            config.bam_path,
            index,
            debug=config.debug,
            max_records=config.debug_cap,
            max_edits=config.max_edits,
            logger=logger,
        )
        lines = write_counts(index, config.counts_path)
    except BaseException:
        Path(config.trace_path).unlink(missing_ok=True)
        raise
    logger.info(f"Wrote {lines} mature counts to {config.counts_path}")
    logger.info(f"Final memory usage: {_get_memory_usage():.1f} MB")

    return MiMapResult(
        index=index,
        counts_path=config.counts_path,
        trace_path=config.trace_path,
        records=records,
        lines=lines,
    )
