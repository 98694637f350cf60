import argparse


def _positive_int(value: str) -> int:
    ivalue = int(value)
    if ivalue <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return ivalue


def parse_args(argv):
    parser = argparse.ArgumentParser(
        prog="clinvar-tsv",
        description="Convert the ClinVar full release XML to TSV files",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "--verbose", "-v", action="store_true", help="Log debug messages"
    )
    verbosity.add_argument(
        "--quiet", "-q", action="store_true", help="Only log warnings and errors"
    )
    subparsers = parser.add_subparsers(
        dest="subcommand", help="Subcommands", required=True
    )

    # XML TO TSV
    xml_to_tsv_sp = subparsers.add_parser(
        "xml-to-tsv", help="Convert ClinVar XML to TSV"
    )
    xml_to_tsv_sp.add_argument(
        "--path-input-xml",
        required=True,
        type=str,
        help="Path to the ClinVar XML file, optionally gzipped (.gz)",
    )
    xml_to_tsv_sp.add_argument(
        "--path-output",
        required=True,
        type=str,
        help="Directory to write the four TSV files to",
    )
    xml_to_tsv_sp.add_argument(
        "--gzip-output",
        action="store_true",
        help=(
            "Compress output files with GZIP. "
            "Set environment variable GZIP_COMPRESSLEVEL to set compression level (default: 9)"
        ),
    )
    xml_to_tsv_sp.add_argument(
        "--limit",
        type=_positive_int,
        default=None,
        help="Stop after this many ClinVarSet records",
    )

    return parser.parse_args(argv)
