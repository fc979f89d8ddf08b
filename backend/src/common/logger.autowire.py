import logging

from dynaload.container import Definitions


def _app_logger(definitions: Definitions) -> logging.Logger:
    settings = definitions.get('settings')
    logger = logging.getLogger(f"{settings.app_name}.app")
    logger.setLevel(settings.log_level.upper())
    return logger


def plugin(definitions: Definitions) -> None:
    definitions.add_definitions({'logger': _app_logger})
