"""
Container and file name validation.

Names are checked locally before any request so that the share service never
sees a name it would reject, and so that no name can escape its directory.
"""

import logging
import re
from typing import Any, Optional

from fileshare_provider.common.metrics import metrics_enabled, name_validation_failures_total
from fileshare_provider.storage.adapter import InvalidNameError
from fileshare_provider.storage.completion import Completion

logger = logging.getLogger(__name__)

# Letters, digits, space, '.', '_' and '-'. Containers cannot nest, so '/' is out.
NAME_PATTERN = re.compile(r"[A-Za-z0-9 ._-]+")

# A '..' path segment anywhere in the name
DOT_DOT_SEGMENT = re.compile(r"(^|[\\/])\.\.([\\/]|$)")


def is_valid_name(name: Any) -> bool:
    """Return True if ``name`` is usable as a container or file name."""
    if not name or not isinstance(name, str):
        return False
    if DOT_DOT_SEGMENT.search(name):
        return False
    return NAME_PATTERN.fullmatch(name) is not None


def validate_name(name: Any, callback: Optional[Completion] = None) -> bool:
    """
    Check a name, reporting a rejection.

    Args:
        name: Candidate container or file name
        callback: Completion to fail on the next loop iteration if the name
            is invalid. Without one the rejection is only logged.

    Returns:
        True if the name is valid
    """
    if is_valid_name(name):
        return True

    if metrics_enabled():
        name_validation_failures_total.inc()

    if callback is not None:
        callback.defer(InvalidNameError(name))
    else:
        logger.error("Invalid name: %s", name)
    return False
