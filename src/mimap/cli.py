import argparse

from .classify import count_alignments
from .map import mi_map
from .miMapClasses import ClassifyConfig, ConfigError, MiMapConfig
from .utils import _make_logger


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Map reads onto mature miRNAs
    if args.cmd == "mi-map":
        logger = _make_logger("mimap.map", args.log_level)
        try:
            config = MiMapConfig(
                bam_path=args.bam,
                mature_fasta=args.mature_fasta,
                mirbase_data=args.mirbase_data,
                species_prefix=args.species,
                out_dir=args.out_dir,
                debug=args.debug,
            )
            result = mi_map(config, logger=logger)
            print(f"Wrote {result.lines} mature counts to: {result.counts_path}")
            return 0
        except ConfigError as e:
            logger.error(f"{e}")
            return 2
        except OSError as e:
            logger.error(f"{e}")
            return 1

    # Host / parasite multiplicity of each read
    elif args.cmd == "count-alignments":
        logger = _make_logger("mimap.classify", args.log_level)
        try:
            config = ClassifyConfig(
                host_pattern=args.host_pattern,
                para_pattern=args.para_pattern,
            )
            count_alignments(args.bam, config, report_path=args.report, logger=logger)
            return 0
        except ConfigError as e:
            logger.error(f"{e}")
            return 2
        except OSError as e:
            logger.error(f"{e}")
            return 1
    else:
        parser.error("Unknown command")

    return 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="mimap",
        description="Map small-RNA alignments to mature miRNAs and classify host/parasite reads."
    )
    sub = p.add_subparsers(dest="cmd", required=True)

    m = sub.add_parser(
        "mi-map",
        help="Count reads of a BAM (aligned to miRNA precursors) against mature miRNA sequences."
    )
    m.add_argument(
        "bam",
        help="BAM aligned against the miRNA genome (references like 'chr1_<ensembl id>')."
    )
    m.add_argument(
        "--mature-fasta",
        required=True,
        help="Mature miRNA sequences, e.g. miRBase mature.fa (.gz accepted)."
    )
    m.add_argument(
        "--mirbase-data",
        required=True,
        help="Tab-delimited table: hit_id, ensembl_id, mirbase_id, 5p name, 5p id, 3p name, 3p id."
    )
    m.add_argument(
        "--species",
        default="mmu",
        help="Only mature ids starting with this prefix are used (default: mmu)."
    )
    m.add_argument(
        "--out-dir",
        default=".",
        help="Directory for <bam>_mature.count and <bam>_mirnadb.txt (default: .)."
    )
    m.add_argument(
        "--debug",
        action="store_true",
        help="Stop after the first 4000 alignments."
    )

    c = sub.add_parser(
        "count-alignments",
        help="Classify reads by the number of host and parasite alignments they have."
    )
    c.add_argument(
        "bam",
        help="Read-grouped BAM aligned against a combined host + parasite reference."
    )
    c.add_argument(
        "--para-pattern",
        default=None,
        help="Regex on reference names marking parasite contigs, e.g. '^Tc'. Wins over --host-pattern."
    )
    c.add_argument(
        "--host-pattern",
        default=None,
        help="Regex on reference names marking host contigs."
    )
    c.add_argument(
        "--report",
        default=None,
        help="Summary output path (default: <bam>.out)."
    )

    # Debugging assistance
    for s in (m, c):
        s.add_argument(
            "--log-level",
            default="INFO",
            choices=["ERROR", "WARNING", "INFO", "DEBUG"],
            help="Logging verbosity (default: INFO)."
        )
    return p

if __name__ == "__main__":
    raise SystemExit(main())
