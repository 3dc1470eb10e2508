from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Dict, List, Optional


class ConfigError(ValueError):
    """Raised when a run configuration is missing or inconsistent."""


# One mature sequence as read from the FASTA
@dataclass
class SequenceRecord:
    id: str
    sequence: str


# Parent record a mature ID points to (temporary, used only while building)
@dataclass
class MirbaseMapping:
    mirbase_id: str
    hit_id: str
    ensembl_id: str
    mimat_id: str


# Mature miRNA child; only 'count' changes after construction
@dataclass
class MatureChild:
    count: int
    ensembl_id: str
    hit_id: str
    source_id: str
    mimat_id: str
    mirbase_id: str
    sequence: str


CrossReferenceIndex = Dict[str, List[MatureChild]]


# A more memory efficient way of storing just essential information from all the alignment info
@dataclass
class AlignmentRecord:
    """Minimal alignment data to reduce memory footprint."""
    __slots__ = ('reference_name', 'read_id', 'query_sequence', 'cigar_is_empty',
                 'position', 'strand', 'quality')
    reference_name: Optional[str]
    read_id: str
    query_sequence: Optional[str]
    cigar_is_empty: bool
    position: int
    strand: str
    quality: int


@dataclass
class ClassificationResult:
    mapped: int = 0
    unmapped: int = 0
    multi_count: int = 0
    single_count: int = 0
    unmapped_count: int = 0
    single_para: int = 0             # Single-hit parasite
    single_host: int = 0             # Single-hit host
    multi_host: int = 0              # Multi-hit host; htseq will not count these
    multi_para: int = 0
    single_both: int = 0             # Danger: one hit on each genome
    single_para_multi_host: int = 0  # Danger
    single_host_multi_para: int = 0  # Danger
    multi_both: int = 0
    zero_both: int = 0               # Should stay zero
    unexpected: int = 0

    # Buckets of the decision table, weighted by reads in the group
    TABLE_BUCKETS = (
        "zero_both", "single_para", "multi_para", "single_host", "single_both",
        "single_host_multi_para", "multi_host", "single_para_multi_host", "multi_both",
    )

    def bump(self, name: str, n: int = 1) -> None:
        if n < 0:
            raise AssertionError(f"Negative increment {n} for counter {name!r}")
        value = getattr(self, name) + n
        if value < 0:
            raise AssertionError(f"Counter {name!r} went negative ({value})")
        setattr(self, name, value)

    def weighted_total(self) -> int:
        return sum(getattr(self, b) for b in self.TABLE_BUCKETS)

    def as_dict(self) -> Dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class MiMapConfig:
    bam_path: str | Path
    mature_fasta: str | Path
    mirbase_data: str | Path
    species_prefix: str = "mmu"
    out_dir: str | Path = "."
    debug: bool = False
    debug_cap: int = 4000
    max_edits: int = 1

    def __post_init__(self):
        for name in ("bam_path", "mature_fasta", "mirbase_data"):
            if not str(getattr(self, name) or ""):
                raise ConfigError(f"'{name}' is required")
        if not self.species_prefix:
            raise ConfigError("'species_prefix' must be a non-empty prefix such as 'mmu'")
        if self.max_edits < 0:
            raise ConfigError(f"'max_edits' must be >= 0, got {self.max_edits}")
        if self.debug_cap <= 0:
            raise ConfigError(f"'debug_cap' must be > 0, got {self.debug_cap}")

    @property
    def bam_base(self) -> str:
        name = Path(self.bam_path).name
        for ext in (".bam", ".sam"):
            if name.endswith(ext):
                return name[: -len(ext)]
        return name

    @property
    def trace_path(self) -> Path:
        return Path(self.out_dir) / f"{self.bam_base}_mirnadb.txt"

    @property
    def counts_path(self) -> Path:
        return Path(self.out_dir) / f"{self.bam_base}_mature.count"


@dataclass
class ClassifyConfig:
    host_pattern: Optional[str] = None
    para_pattern: Optional[str] = None
    host_re: Optional[re.Pattern] = field(default=None, init=False, repr=False)
    para_re: Optional[re.Pattern] = field(default=None, init=False, repr=False)

    def __post_init__(self):
        if not self.host_pattern and not self.para_pattern:
            raise ConfigError("One of host_pattern or para_pattern must be given")
        try:
            if self.para_pattern:
                self.para_re = re.compile(self.para_pattern)
            if self.host_pattern:
                self.host_re = re.compile(self.host_pattern)
        except re.error as e:
            raise ConfigError(f"Invalid reference-name pattern: {e}") from e
