LOG_FORMAT = "%(asctime)s - %(module)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def log_level(verbose: bool = False, quiet: bool = False) -> str:
    if verbose:
        return "DEBUG"
    if quiet:
        return "WARNING"
    return "INFO"
