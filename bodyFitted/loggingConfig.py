# -- Logging Configuration -- #

'''
Sets up the package logger for the bodyFitted namespace.

Library modules log through module-level loggers obtained with
logging.getLogger(__name__); this helper attaches the console
(and optional file) handlers for a host program.
'''

from __future__ import annotations

import logging
import sys


def setupLogging(level: int = logging.INFO, logFile: str | None = None) -> logging.Logger:
    '''
    Configure the 'bodyFitted' logger.

    Existing handlers are cleared first so repeated calls (e.g. from
    an interactive session) do not duplicate output.

    Parameters:
    -----------
    level : int
        Logging level (logging.DEBUG, logging.INFO, ...)
    logFile : str | None
        Optional path of a log file written alongside the console

    Returns:
    --------
    logging.Logger : The configured package logger
    '''
    logger = logging.getLogger('bodyFitted')
    logger.setLevel(level)

    if logger.hasHandlers():
        logger.handlers.clear()

    # Format: Time - Module - Level - Message
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S',
    )

    consoleHandler = logging.StreamHandler(sys.stdout)
    consoleHandler.setLevel(level)
    consoleHandler.setFormatter(formatter)
    logger.addHandler(consoleHandler)

    if logFile:
        fileHandler = logging.FileHandler(logFile, mode='w', encoding='utf-8')
        fileHandler.setLevel(level)
        fileHandler.setFormatter(formatter)
        logger.addHandler(fileHandler)

    logger.debug('Logging initialized.')
    return logger
