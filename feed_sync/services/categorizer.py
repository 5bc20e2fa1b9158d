"""Default item categorizer.

Categorization is provided by an external AI service. NullCategorizer
stands in when none is configured: it keeps the in-progress bookkeeping the
scheduler relies on and produces no groups.
"""

import logging
from typing import List


logger = logging.getLogger(__name__)


class NullCategorizer:
    def __init__(self):
        self._in_progress = False

    @property
    def is_categorization_in_progress(self) -> bool:
        return self._in_progress

    async def categorize_uncategorized(self) -> List[dict]:
        if self._in_progress:
            logger.warning("Categorization already in progress, skipping")
            return []

        self._in_progress = True
        try:
            logger.debug("No categorization service configured, skipping")
            return []
        finally:
            self._in_progress = False
