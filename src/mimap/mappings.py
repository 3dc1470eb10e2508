from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from .miMapClasses import CrossReferenceIndex, MatureChild, MirbaseMapping
from .utils import _open_text_auto, partial_output


def parse_mapping_lines(
    lines: Iterable[str],
    logger: logging.Logger | None = None,
) -> Dict[str, MirbaseMapping]:
    """
    Collate mature IDs to their parent records from miRBase-style rows:

        hit_id  ensembl_id  mirbase_id  5p_mature  5p_id  3p_mature  3p_id

    Quotes are stripped and columns split on any whitespace. A row may carry
    a 5' child, a 3' child, or both; absent children are skipped. If the same
    mature ID appears twice, the later row wins.
    """
    pre_map: Dict[str, MirbaseMapping] = {}
    for line in lines:
        cols = line.rstrip("\n").replace('"', "").split()
        if len(cols) < 3:
            continue
        hit_id, ensembl_id, mirbase_id = cols[0], cols[1], cols[2]
        fivep_id = cols[4] if len(cols) > 4 else ""
        threep_id = cols[6] if len(cols) > 6 else ""
        for child_id in (fivep_id, threep_id):
            if not child_id:
                continue
            if logger and child_id in pre_map and logger.isEnabledFor(logging.DEBUG):
                logger.debug(
                    f"{child_id}: parent {pre_map[child_id].mirbase_id} replaced by {mirbase_id}"
                )
            pre_map[child_id] = MirbaseMapping(
                mirbase_id=mirbase_id,
                hit_id=hit_id,
                ensembl_id=ensembl_id,
                mimat_id=child_id,
            )
    return pre_map


def read_mirbase_mappings(
    path: str | Path,
    logger: logging.Logger | None = None,
) -> Dict[str, MirbaseMapping]:
    with _open_text_auto(path) as fh:
        pre_map = parse_mapping_lines(fh, logger=logger)
    if logger:
        logger.info(f"miRNA mappings loaded from {path}: {len(pre_map)} mature ids")
    return pre_map


def _resolve(seq_id: str, pre_map: Dict[str, MirbaseMapping], species_prefix: str) -> Optional[MirbaseMapping]:
    hit = pre_map.get(seq_id)
    if hit is None and seq_id.startswith(species_prefix + "-"):
        hit = pre_map.get(seq_id[len(species_prefix) + 1:])
    return hit


def build_cross_reference_index(
    pre_map: Dict[str, MirbaseMapping],
    sequence_index: Dict[str, str],
    *,
    species_prefix: str = "mmu",
    trace_path: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> CrossReferenceIndex:
    """
    Re-key the mature sequences by their parent ensembl ID:

        ensembl_id -> [MatureChild, MatureChild, ...]

    Only sequence ids starting with 'species_prefix' are considered. Each id is
    looked up in 'pre_map' as-is, then without its '<species_prefix>-' prefix.
    Children keep the order the sequence index is iterated in. When
    'trace_path' is given, one line per appended child is written there.
    """
    index: CrossReferenceIndex = {}
    trace_lines = []
    not_found = 0

    for seq_id, sequence in sequence_index.items():
        if not seq_id.startswith(species_prefix):
            continue
        mapping = _resolve(seq_id, pre_map, species_prefix)
        if mapping is None:
            not_found += 1
            continue
        child = MatureChild(
            count=0,
            ensembl_id=mapping.ensembl_id,
            hit_id=mapping.hit_id,
            source_id=seq_id,
            mimat_id=mapping.mimat_id,
            mirbase_id=mapping.mirbase_id,
            sequence=sequence,
        )
        index.setdefault(child.ensembl_id, []).append(child)
        trace_lines.append(
            f"{seq_id}; {child.mirbase_id}; {child.ensembl_id}; "
            f"{child.hit_id}; {child.mimat_id}; {child.sequence}\n"
        )

    if trace_path is not None:
        with partial_output(trace_path) as out:
            out.writelines(trace_lines)

    if logger:
        n_children = sum(len(v) for v in index.values())
        logger.info(f"Cross-reference index built: {len(index)} parents, {n_children} mature children")
        logger.debug(f"Sequence ids with prefix '{species_prefix}' not in mappings: {not_found}")
    return index


def build(
    mapping_path: str | Path,
    sequence_index: Dict[str, str],
    *,
    species_prefix: str = "mmu",
    trace_path: str | Path | None = None,
    logger: logging.Logger | None = None,
) -> Tuple[Dict[str, MirbaseMapping], CrossReferenceIndex]:
    pre_map = read_mirbase_mappings(mapping_path, logger=logger)
    index = build_cross_reference_index(
        pre_map,
        sequence_index,
        species_prefix=species_prefix,
        trace_path=trace_path,
        logger=logger,
    )
    return pre_map, index
