import logging
import resource
import sys
import time


def make_progress_logger(
    logger, fmt: str, max_value: int = 0, interval: int = 10, level=logging.INFO
):
    """
    Returns a function `log_progress(current_value, force=False)` which logs
    `fmt` at `level` at most once every `interval` seconds, unless forced.
    The first call only initializes the timer.

    `fmt` may refer to {current_value}, {elapsed} (seconds since the last
    message), {elapsed_value} (increase since the last message) and {max_value}.
    """

    def log_progress(current_value, force=False):
        if getattr(log_progress, "prev_log_time", None) is None:
            log_progress.prev_log_time = time.time()
            log_progress.prev_value = 0
            log_progress.max_value = max_value
            return
        now = time.time()
        if force or now - log_progress.prev_log_time > interval:
            elapsed = now - log_progress.prev_log_time
            elapsed_value = current_value - log_progress.prev_value
            logger.log(
                level,
                fmt.format(
                    current_value=current_value,
                    elapsed=elapsed,
                    elapsed_value=elapsed_value,
                    max_value=log_progress.max_value,
                ),
            )

            log_progress.prev_log_time = now
            log_progress.prev_value = current_value

    return log_progress


def peak_rss_mib() -> float:
    """
    Peak resident set size of this process in MiB.
    ru_maxrss is reported in KiB on Linux and in bytes on macOS.
    """
    max_rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    if sys.platform == "darwin":
        return max_rss / (1024 * 1024)
    return max_rss / 1024
