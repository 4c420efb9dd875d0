"""Content classification: control commands and dense-script (CJK) detection.

Decides, without any network call, whether a text is a control command that
must bypass translation and whether it is written in the user language
closely enough to need translating.
"""

import logging
import re
from typing import ClassVar, Optional

logger = logging.getLogger(__name__)

# Han ideographs incl. extension A and compatibility ideographs
DENSE_SCRIPT = r"\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff"
# Same, plus CJK punctuation and full-width forms
DENSE_SCRIPT_EXTENDED = DENSE_SCRIPT + r"\u3000-\u303f\uff00-\uffef"


class ContentClassifier:
    """Heuristic classifier for text routed through the translation gateway.

    Short texts are treated leniently (a single CJK character is enough),
    long texts need a minimum share of CJK characters once code, URLs and
    e-mail addresses have been stripped.
    """

    COMMAND_PREFIX: ClassVar[str] = "/"
    SHORT_TEXT_MAX_CHARS: ClassVar[int] = 20
    MIN_STRIPPED_RATIO: ClassVar[float] = 0.10
    MIN_RAW_RATIO: ClassVar[float] = 0.08
    MIN_DENSE_COUNT: ClassVar[int] = 5

    URL_PREFIX_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        r"^(?:https?://|ftp://|file://|//)", re.IGNORECASE
    )

    DENSE_PATTERN: ClassVar[re.Pattern[str]] = re.compile(f"[{DENSE_SCRIPT}]")
    DENSE_EXTENDED_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        f"[{DENSE_SCRIPT_EXTENDED}]"
    )

    # Fragments removed before counting, unless they contain CJK themselves
    CODE_FENCE_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"```[\s\S]*?```")
    INLINE_CODE_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"`[^`\n]+`")
    URL_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        f"https?://[^\\s{DENSE_SCRIPT}]+"
    )
    WINDOWS_PATH_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        f"[a-zA-Z]:[\\\\/][^\\s{DENSE_SCRIPT}]+"
    )
    # English log prefixes, unless CJK text follows anywhere later
    LOG_PREFIX_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        f"^\\s*(?:error|warning|info|debug):\\s*(?![\\s\\S]*[{DENSE_SCRIPT}])",
        re.IGNORECASE | re.MULTILINE,
    )
    EMAIL_PATTERN: ClassVar[re.Pattern[str]] = re.compile(
        r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"
    )
    WHITESPACE_PATTERN: ClassVar[re.Pattern[str]] = re.compile(r"\s+")

    def __init__(self, user_language: str = "zh"):
        """Initialize the classifier.

        Args:
            user_language: Language code of the dense-script user language.
        """
        self.user_language = (user_language or "zh").strip().lower()

    def is_control_command(self, text: str) -> bool:
        """Return True if the text is a control command (``/help``).

        ``//`` prefixed text is a comment or escape and bare URLs are
        ordinary text.
        """
        trimmed = (text or "").strip()
        if not trimmed.startswith(self.COMMAND_PREFIX):
            return False
        if trimmed.startswith(self.COMMAND_PREFIX * 2):
            return False
        if self.URL_PREFIX_PATTERN.match(trimmed):
            return False
        return True

    def _drop_without_dense(self, match: re.Match[str]) -> str:
        fragment = match.group(0)
        if self.DENSE_PATTERN.search(fragment):
            return fragment
        return " "

    def strip_non_prose(self, text: str) -> str:
        """Remove code, URLs, Windows paths, log prefixes and e-mail addresses.

        Fragments that contain CJK characters are kept, since they carry
        user-language content.
        """
        stripped = self.CODE_FENCE_PATTERN.sub(self._drop_without_dense, text)
        stripped = self.INLINE_CODE_PATTERN.sub(self._drop_without_dense, stripped)
        stripped = self.URL_PATTERN.sub(" ", stripped)
        stripped = self.WINDOWS_PATH_PATTERN.sub(" ", stripped)
        stripped = self.LOG_PREFIX_PATTERN.sub(" ", stripped)
        stripped = self.EMAIL_PATTERN.sub(" ", stripped)
        return self.WHITESPACE_PATTERN.sub(" ", stripped).strip()

    def contains_dense_content(self, text: str) -> bool:
        """Character-ratio heuristic for user-language (CJK) content."""
        if not text or not text.strip():
            return False

        raw_count = len(self.DENSE_EXTENDED_PATTERN.findall(text))
        if raw_count == 0:
            return False

        stripped = self.strip_non_prose(text)
        dense_count = len(self.DENSE_PATTERN.findall(stripped))
        if dense_count == 0:
            return False

        if len(text) <= self.SHORT_TEXT_MAX_CHARS:
            return True

        ratio = dense_count / len(stripped) if stripped else 1.0
        raw_ratio = raw_count / len(text)

        logger.debug(
            "Dense content analysis: length=%d stripped_length=%d dense=%d raw=%d",
            len(text),
            len(stripped),
            dense_count,
            raw_count,
        )

        return (
            ratio >= self.MIN_STRIPPED_RATIO
            or raw_ratio >= self.MIN_RAW_RATIO
            or dense_count >= self.MIN_DENSE_COUNT
        )

    def needs_translation(
        self, text: str, declared_language: Optional[str] = None
    ) -> bool:
        """Decide whether outbound text must be translated.

        Content wins; the declared language only counts for text that is not
        pure ASCII.

        Args:
            text: Text to classify.
            declared_language: Language code reported by a detector, if any.

        Returns:
            True if the text should be translated to the upstream language.
        """
        if self.contains_dense_content(text):
            return True
        declared = (declared_language or "").strip().lower()
        if not declared.startswith(self.user_language):
            return False
        return not (text or "").isascii()
