# collabchat/core/security/sanitization.py
import bleach
from typing import Optional


class ContentSanitizer:
    """Cleans user supplied chat text before it is stored"""

    allowed_tags = ['p', 'br', 'strong', 'em', 'u', 'ul', 'ol', 'li', 'code', 'pre']

    def __init__(self, max_length: Optional[int] = None):
        self.max_length = max_length

    def sanitize_string(self, value: str) -> str:
        """Strip control characters and disallowed markup from a string."""
        if not isinstance(value, str):
            return str(value)
        value = value.replace('\x00', '')
        value = ''.join(char for char in value if char >= ' ' or char in '\n\t')
        return bleach.clean(value, tags=self.allowed_tags, strip=True)

    def exceeds_length(self, value: str) -> bool:
        return self.max_length is not None and len(value) > self.max_length
