"""
Argosy logging setup.

Library modules log through logging.getLogger(__name__) under the "argosy"
logger, which carries a NullHandler until the host opts in. install() couples
that logger to a rich console (stderr by default, like the fault renderer);
uninstall() detaches it again.

Example
    >>> import logging, argosy.logs
    >>> argosy.logs.install(logging.DEBUG)
"""
import logging

from rich.logging import RichHandler

from .faults import console as _console
from .utils import Unset, coalesce

logger = logging.getLogger("argosy")


def uninstall():
    """
    Remove the RichHandlers previously attached to the "argosy" logger.
    """
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)


def install(level=logging.INFO, /, console=Unset):
    """
    Attach a RichHandler to the "argosy" logger and set its level.

    Parameters
    - level: int | str. Logging level of the "argosy" logger.
    - console: Unset | rich.console.Console. Defaults to the stderr console
      used for faults.

    Returns
    - The installed handler. Calling install() again replaces it.
    """
    uninstall()
    handler = RichHandler(
        console=coalesce(console, _console),
        show_time=False,
        omit_repeated_times=False,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
    )
    logger.setLevel(level)
    logger.addHandler(handler)
    return handler


__all__ = (
    "install",
    "uninstall",
)
