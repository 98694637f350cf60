import json
import logging
import time

from clinvar_tsv.builder import RecordBuilder
from clinvar_tsv.config import get_env
from clinvar_tsv.fs import ReadAheadReader
from clinvar_tsv.normalize import annotate_clinvar_set
from clinvar_tsv.reader import iter_xml_events, read_release_set
from clinvar_tsv.router import OutputRouter
from clinvar_tsv.tsv import open_sinks
from clinvar_tsv.utils import make_progress_logger, peak_rss_mib

_logger = logging.getLogger("clinvar_tsv")


def parse_and_write_files(
    input_filename: str,
    output_directory: str,
    gzip_output=False,
    limit: None | int = None,
) -> dict[str, str]:
    """
    Parses input file, writes one TSV file per (assembly, variant shape) to the
    output directory.

    Returns the dict of bucket labels to their output files.
    """
    start_time = time.time()
    env = get_env()

    with ReadAheadReader(
        input_filename, buffer_size=env.buffer_size, queue_depth=env.queue_depth
    ) as f_in:
        release_set = read_release_set(f_in)

    sinks = open_sinks(
        output_directory,
        release_date=release_set.release_date,
        gzip_output=gzip_output,
    )
    router = OutputRouter(sinks)

    object_count = 0
    byte_log_progress = make_progress_logger(
        logger=_logger,
        fmt="Read {elapsed_value} bytes in {elapsed:.2f}s. Total bytes read: {current_value}.",
        interval=env.progress_interval,
    )
    object_log_progress = make_progress_logger(
        logger=_logger,
        fmt="Read {elapsed_value} ClinVarSet in {elapsed:.2f}s. Total: {current_value}.",
        interval=env.progress_interval,
    )
    rss_log_progress = make_progress_logger(
        logger=_logger,
        fmt="Peak resident set size: {current_value:.1f} MiB.",
        interval=env.progress_interval,
        level=logging.DEBUG,
    )

    try:
        with ReadAheadReader(
            input_filename, buffer_size=env.buffer_size, queue_depth=env.queue_depth
        ) as f_in:
            byte_log_progress(0)  # initialize
            object_log_progress(0)  # initialize
            rss_log_progress(0)  # initialize

            builder = RecordBuilder()
            for clinvar_set in builder.build(iter_xml_events(f_in)):
                annotate_clinvar_set(clinvar_set)
                router.route(clinvar_set)

                # Log offset and count for monitoring
                object_count += 1
                byte_log_progress(f_in.tell())
                object_log_progress(object_count)
                rss_log_progress(peak_rss_mib())

                if limit and object_count >= limit:
                    _logger.info("Hard limit reached: %d", limit)
                    break

            # Log final status
            byte_log_progress(f_in.tell(), force=True)
            object_log_progress(object_count, force=True)
            rss_log_progress(peak_rss_mib(), force=True)

    except Exception as e:
        _logger.critical("Exception caught in parse_and_write_files")
        raise e
    finally:
        _logger.debug("Closing output files")
        for sink in sinks.values():
            sink.close()

    output_files = {
        f"{shape}_{assembly}": sink.path for (assembly, shape), sink in sinks.items()
    }
    row_counts = {
        f"{shape}_{assembly}": count
        for (assembly, shape), count in router.row_counts.items()
    }
    _logger.info("Rows written: %s", json.dumps(row_counts))
    _logger.info("Output files: %s", json.dumps(output_files))
    _logger.info(f"xml-to-tsv ran for {time.time() - start_time:.2f}s")
    return output_files
