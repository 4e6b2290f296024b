"""
Generic tree walk built from list and stat.
"""

import logging
from typing import Callable

from .errors import PathNotFoundError
from .model.fileinfo import FileInfo

logger = logging.getLogger(__name__)


class SkipDir(Exception):
    """
    Raised by a walk visitor to prune the walk.

    On a directory the directory's subtree is skipped; on a file the
    remaining entries of the containing directory are skipped.
    """


def walk_fallback(driver, path: str, visitor: Callable[[FileInfo], None]) -> None:
    """
    Visit every path below path, depth first, children in sorted order.

    Children removed between listing and stat are skipped. Any
    exception other than SkipDir raised by the visitor aborts the walk.
    """
    for child in sorted(driver.list(path)):
        try:
            info = driver.stat(child)
        except PathNotFoundError:
            logger.debug("Skipping %s: removed during walk", child)
            continue

        try:
            visitor(info)
        except SkipDir:
            if info.is_dir:
                continue
            return

        if info.is_dir:
            walk_fallback(driver, child, visitor)
