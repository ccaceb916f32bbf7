"""Console logging for the lanshare package."""

import logging

LOGGER_NAME = "lanshare"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)
    logger.propagate = False

    # werkzeug logs every request at INFO; keep it quiet unless debugging
    logging.getLogger("werkzeug").setLevel(
        logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    )
    return logger
