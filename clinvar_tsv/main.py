import json
import logging
import sys
from argparse import Namespace

import coloredlogs

from clinvar_tsv.cli import parse_args
from clinvar_tsv.exceptions import ClinVarTsvError
from clinvar_tsv.log_conf import LOG_DATE_FORMAT, LOG_FORMAT, log_level
from clinvar_tsv.parse import parse_and_write_files

_logger = logging.getLogger("clinvar_tsv")


def run_xml_to_tsv(args: Namespace):
    output_files = parse_and_write_files(
        args.path_input_xml,
        args.path_output,
        gzip_output=args.gzip_output,
        limit=args.limit,
    )
    print(json.dumps(output_files))
    return output_files


def run_cli(argv: list[str]):
    """
    Primary entrypoint function for CLI args. Takes argv vector excluding program name.
    """
    args = parse_args(argv)
    coloredlogs.install(
        level=log_level(verbose=args.verbose, quiet=args.quiet),
        fmt=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    if args.subcommand == "xml-to-tsv":
        return run_xml_to_tsv(args)
    raise ValueError(f"Unknown subcommand: {args.subcommand}")


def main(argv=sys.argv[1:]):
    """
    Used when executing main as a script.
    Exits with status 1 on errors reading the input or writing the output.
    """
    try:
        run_cli(argv)
    except (ClinVarTsvError, OSError) as e:
        _logger.critical(f"{type(e).__name__}: {e}")
        sys.exit(1)
    _logger.info("All done. Have a nice day!")
    return 0


if __name__ == "__main__":
    main()
