"""Customer tag matching.

Shopify staff approve a VAT exemption by tagging the customer; the client
checks the customer's tags for that marker. Supports:
- Case-insensitive exact matching (default)
- Substring matching
- Regular expressions
"""

import re

from src.config import TagMatchMode
from src.logging_config import get_logger

logger = get_logger(__name__)


class TagMatcher:
    """Finds the first customer tag matching any configured tag.

    Example:
        >>> matcher = TagMatcher(["vat-verified"])
        >>> matcher.find(["wholesale", "VAT-Verified"])
        'vat-verified'
        >>> matcher.matches(["wholesale"])
        False
    """

    def __init__(
        self,
        tags: list[str],
        match_mode: TagMatchMode = TagMatchMode.EXACT,
    ):
        self.tags = [tag.lower() for tag in tags if tag]
        self.match_mode = match_mode
        self._patterns: list[re.Pattern] = []
        if match_mode == TagMatchMode.REGEX:
            self._patterns = [re.compile(pattern, re.IGNORECASE) for pattern in self.tags]

    def find(self, customer_tags: list[str] | None) -> str | None:
        """Return the first matching (lowercased) customer tag, or None."""
        for tag in (t.lower() for t in customer_tags or [] if t):
            if self.match_mode == TagMatchMode.EXACT:
                if tag in self.tags:
                    return tag

            elif self.match_mode == TagMatchMode.CONTAINS:
                for wanted in self.tags:
                    if wanted in tag:
                        return tag

            elif self.match_mode == TagMatchMode.REGEX:
                for pattern in self._patterns:
                    if pattern.search(tag):
                        return tag

        return None

    def matches(self, customer_tags: list[str] | None) -> bool:
        matched = self.find(customer_tags)
        logger.debug(
            "Customer tag check",
            extra={"wanted": self.tags, "matched": matched},
        )
        return matched is not None

    def __repr__(self) -> str:
        return f"TagMatcher(tags={self.tags}, match_mode={self.match_mode.value})"
