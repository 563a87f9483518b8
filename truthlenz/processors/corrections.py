from __future__ import annotations

import logging
from dataclasses import dataclass, field

from truthlenz.llm.providers import MediaSegment
from truthlenz.models.types import MEDIA_KINDS, CorrectionRecord
from truthlenz.processors.canonical import canonicalize, fingerprint, split_data_url
from truthlenz.storage.database import Database

logger = logging.getLogger(__name__)


class CorrectionRetriever:
    """Looks up human corrections relevant to a piece of content.

    Exact fingerprint matches win; otherwise the most recent corrections for
    the same content kind are returned as general guidance.
    """

    def __init__(
        self,
        database: Database | None,
        exact_match_limit: int = 3,
        recent_limit: int = 10,
    ) -> None:
        self._database = database
        self._exact_match_limit = exact_match_limit
        self._recent_limit = recent_limit

    def retrieve(self, content: str, kind: str) -> list[CorrectionRecord]:
        if self._database is None:
            return []
        try:
            content_hash = fingerprint(canonicalize(content or "", kind))
            exact = self._database.find_corrections(content_hash, self._exact_match_limit)
            if exact:
                logger.info("Found %d exact-match corrections", len(exact))
                return exact
            recent = self._database.recent_corrections(kind, self._recent_limit)
            if recent:
                logger.info("Using %d recent %s corrections as guidance", len(recent), kind)
            return recent
        except Exception as exc:
            logger.warning("Correction lookup failed, continuing without: %s", exc)
            return []


@dataclass
class FewShotContext:
    lines: list[str] = field(default_factory=list)
    media: list[MediaSegment] = field(default_factory=list)

    def render(self) -> str:
        if not self.lines:
            return ""
        body = "\n".join(f"- {line}" for line in self.lines)
        return f"Learn from past corrections:\n{body}\n"

    def __bool__(self) -> bool:
        return bool(self.lines or self.media)


@dataclass
class FewShotContextBuilder:
    """Turns corrections into a bounded set of prompt examples."""

    max_examples: int = 5
    max_media_examples: int = 2
    content_excerpt_chars: int = 200
    explanation_chars: int = 300

    def build(self, corrections: list[CorrectionRecord], kind: str) -> FewShotContext:
        context = FewShotContext()
        for record in corrections[: self.max_examples]:
            context.lines.append(self._describe(record, kind))
            if (
                kind in MEDIA_KINDS
                and record.media_payload
                and len(context.media) < self.max_media_examples
            ):
                mime_type, data = split_data_url(record.media_payload, kind)
                context.media.append(MediaSegment(mime_type, data))
        return context

    def _describe(self, record: CorrectionRecord, kind: str) -> str:
        line = (
            f"Original verdict '{record.original_verdict}' was wrong; "
            f"correct verdict is '{record.correct_verdict or 'unspecified'}'"
        )
        explanation = _truncate(record.user_explanation, self.explanation_chars)
        if explanation:
            line += f' because "{explanation}"'
        if kind not in MEDIA_KINDS and record.original_content:
            excerpt = _truncate(record.original_content, self.content_excerpt_chars)
            line += f" (content: '{excerpt}')"
        return line + "."


def _truncate(text: str, limit: int) -> str:
    text = " ".join((text or "").split())
    if len(text) <= limit:
        return text
    return text[: max(0, limit - 3)].rstrip() + "..."
