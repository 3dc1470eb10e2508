from __future__ import annotations

import logging
from contextlib import closing
from pathlib import Path
from typing import Iterable, List, Optional

from .alignments import iter_alignments
from .miMapClasses import AlignmentRecord, ClassificationResult, ClassifyConfig, ConfigError
from .utils import _get_memory_usage, _make_logger, partial_output

HOST = "host"
PARA = "para"
PROGRESS_EVERY = 1_000_000


def origin_of(reference_name: Optional[str], config: ClassifyConfig) -> str:
    """
    'host' or 'para' for a reference name. The parasite pattern is consulted
    first when given; anything it does not match is host, and vice versa for
    the host pattern.
    """
    name = reference_name or ""
    if config.para_re is not None:
        return PARA if config.para_re.search(name) else HOST
    if config.host_re is not None:
        return HOST if config.host_re.search(name) else PARA
    raise ConfigError("No host or parasite pattern configured")


def bucket_for(host: int, para: int) -> str:
    if host == 0:
        if para == 0:
            return "zero_both"
        elif para == 1:
            return "single_para"
        elif para > 1:
            return "multi_para"
    elif host == 1:
        if para == 0:
            return "single_host"
        elif para == 1:
            return "single_both"
        elif para > 1:
            return "single_host_multi_para"
    elif host > 1:
        if para == 0:
            return "multi_host"
        elif para == 1:
            return "single_para_multi_host"
        elif para > 1:
            return "multi_both"
    return "unexpected"


class ReadGroupTally:
    """
    Accumulates host/parasite hits over consecutive records of the same read.

    States are NoActiveGroup (read_id is None) and
    AccumulatingGroup(read_id, host, para). feed() either extends the active
    group or flushes it into the result and starts a new one; finish()
    flushes whatever is pending.
    """

    def __init__(self, result: Optional[ClassificationResult] = None):
        self.result = result if result is not None else ClassificationResult()
        self.read_id: Optional[str] = None
        self.counts = {HOST: 0, PARA: 0}

    @property
    def active(self) -> bool:
        return self.read_id is not None

    def feed(self, read_id: str, kind: str) -> None:
        if kind not in self.counts:
            raise ValueError(f"Unknown alignment origin {kind!r}")
        if self.read_id != read_id:
            self.flush()
            self.read_id = read_id
        self.counts[kind] += 1

    def flush(self) -> None:
        if not self.active:
            return
        host, para = self.counts[HOST], self.counts[PARA]
        reads_in_group = host + para
        if reads_in_group > 1:
            self.result.bump("multi_count")
        elif reads_in_group == 1:
            self.result.bump("single_count")
        else:
            self.result.bump("unmapped_count")

        bucket = bucket_for(host, para)
        if bucket in ("zero_both", "unexpected"):
            self.result.bump(bucket)
        else:
            self.result.bump(bucket, reads_in_group)

        self.read_id = None
        self.counts = {HOST: 0, PARA: 0}

    def finish(self) -> ClassificationResult:
        self.flush()
        return self.result


def classify(
    records: Iterable[AlignmentRecord],
    config: ClassifyConfig,
    *,
    progress: Optional[List[str]] = None,
    logger: logging.Logger | None = None,
) -> ClassificationResult:
    """
    Bucket the reads of a read-grouped alignment stream by how many host and
    parasite hits each read has. Records are taken in stream order; no
    re-sorting is done. Unaligned records (empty CIGAR) only count toward
    'unmapped' and 'unmapped_count'.
    """
    tally = ReadGroupTally()
    result = tally.result
    n_records = 0
    for rec in records:
        n_records += 1
        if n_records % PROGRESS_EVERY == 0:
            msg = f"Finished {n_records:,} alignments."
            if progress is not None:
                progress.append(msg)
            if logger:
                logger.info(f"{msg} (Memory: {_get_memory_usage():.1f} MB)")

        if rec.cigar_is_empty:
            result.bump("unmapped")
            result.bump("unmapped_count")
            continue

        result.bump("mapped")
        tally.feed(rec.read_id, origin_of(rec.reference_name, config))

        if logger and logger.isEnabledFor(logging.DEBUG) and n_records <= 200:
            logger.debug(" ".join(f"{k}:{v}" for k, v in result.as_dict().items()))

    return tally.finish()


def format_summary(result: ClassificationResult) -> str:
    return (
        f"Mapped: {result.mapped}\n"
        f"Unmapped: {result.unmapped}\n"
        f"Multi-mapped: {result.multi_count}\n"
        f"Single-mapped: {result.single_count}\n"
        f"Unmapped reads: {result.unmapped_count}\n"
        f"Single-parasite: {result.single_para}\n"
        f"Single-host: {result.single_host}\n"
        f"Multi-parasite, no host: {result.multi_para}\n"
        f"Multi-host, no parasite: {result.multi_host}\n"
        f"DANGER Single-both: {result.single_both}\n"
        f"DANGER Single-parasite, multi-host: {result.single_para_multi_host}\n"
        f"DANGER Single-host, multi-parasite: {result.single_host_multi_para}\n"
        f"Multi-both: {result.multi_both}\n"
        f"Zero-both: {result.zero_both}\n"
        f"Unexpected: {result.unexpected}\n"
    )


def count_alignments(
    bam_path: str | Path,
    config: ClassifyConfig,
    *,
    report_path: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> ClassificationResult:
    """
    Classify a BAM aligned against a combined host + parasite reference and
    write a plain-text summary next to it ('<bam>.out' unless 'report_path').
    """
    if logger is None:
        logger = _make_logger("mimap.classify")
    report = Path(report_path) if report_path else Path(f"{bam_path}.out")

    logger.info(f"Classifying alignments in {bam_path}")
    progress: List[str] = []
    with closing(iter_alignments(bam_path)) as records:
        result = classify(records, config, progress=progress, logger=logger)

    with partial_output(report) as out:
        out.write(f"There are {result.mapped + result.unmapped} alignments in {bam_path} made of "
                  f"{result.mapped} aligned and {result.unmapped} unaligned records.\n")
        for line in progress:
            out.write(line + "\n")
        out.write(format_summary(result))

    danger = result.single_both + result.single_para_multi_host + result.single_host_multi_para
    logger.info(f"Done {bam_path}: mapped={result.mapped}, unmapped={result.unmapped}, danger={danger}")
    logger.info(f"Wrote summary to {report}")
    return result
