"""Content chunking.

``ContentChunker`` tries its strategies in order and keeps the first one that
yields usable chunks:

1. header split (markdown ``#`` headers, ``1. `` headings, ``Title:`` lines)
2. blank-line paragraph split
3. size-bounded sentence packing (only for content longer than ``max_chunk_size``)
4. the whole input as a single chunk
"""

import logging
import re
from typing import Optional

from pydantic import BaseModel, Field

from .base import BaseChunker
from .items import ContentChunk
from .tags import TagExtractor

logger = logging.getLogger(__name__)

MARKDOWN_HEADER = re.compile(r"^\s{0,3}#{1,6}\s+(.+?)\s*#*\s*$")
NUMBERED_HEADING = re.compile(r"^\d+\.\s+(\S.{0,79})$")
COLON_TITLE = re.compile(r"^([A-Z][^.:]{0,79}):\s*$")
LIST_ITEM = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")
SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")


class ChunkingReport(BaseModel):
    """Chunks plus the fragments dropped for being below the minimum size."""

    chunks: list[ContentChunk] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    strategy: str = "empty"


class ContentChunker(BaseChunker):
    """Split long content into self-contained, tagged chunks."""

    DEFAULT_TITLE = "General Information"

    def __init__(
        self,
        min_chunk_size: int = 50,
        max_chunk_size: int = 2000,
        tag_extractor: Optional[TagExtractor] = None,
        default_title: str = DEFAULT_TITLE,
    ):
        """Initialize the chunker.

        Args:
            min_chunk_size: Chunks shorter than this are dropped (header and
                paragraph splits) or not closed yet (sentence packing)
            max_chunk_size: Upper bound for packed chunks
            tag_extractor: Structural tag extractor
            default_title: Title for chunks with no derivable title
        """
        if min_chunk_size < 1:
            raise ValueError("min_chunk_size must be positive")
        if min_chunk_size >= max_chunk_size:
            raise ValueError("min_chunk_size must be less than max_chunk_size")

        self.min_chunk_size = min_chunk_size
        self.max_chunk_size = max_chunk_size
        self.tag_extractor = tag_extractor or TagExtractor()
        self.default_title = default_title

    def chunk(
        self,
        content: str,
        title: Optional[str] = None,
        context: Optional[str] = None,
    ) -> list[ContentChunk]:
        """Split content into chunks."""
        return self.chunk_with_report(content, title, context).chunks

    def chunk_with_report(
        self,
        content: str,
        title: Optional[str] = None,
        context: Optional[str] = None,
    ) -> ChunkingReport:
        """Split content and report which fragments were dropped.

        Args:
            content: Raw content blob
            title: Title for the single-chunk fallback and unheaded preambles
            context: Company/source identifier prefixed to each chunk

        Returns:
            Chunking report; empty content yields no chunks
        """
        text = content.strip() if content else ""
        if not text:
            return ChunkingReport()

        fallback_title = title or self.default_title

        for strategy in (self._split_by_headers, self._split_by_paragraphs):
            sections, dropped, name = strategy(text, fallback_title)
            if len(sections) > 1:
                return self._build(sections, dropped, name, context)

        if len(text) > self.max_chunk_size:
            pieces = self._pack_sentences(text)
            sections = [
                (f"{fallback_title} (part {i + 1})", piece, None)
                for i, piece in enumerate(pieces)
            ]
            return self._build(sections, [], "sentences", context)

        return self._build([(fallback_title, text, None)], [], "single", context)

    def _build(
        self,
        sections: list[tuple[str, str, Optional[str]]],
        dropped: list[str],
        strategy: str,
        context: Optional[str],
    ) -> ChunkingReport:
        chunks = []
        for section_title, body, header in self._enforce_max_size(sections):
            chunks.append(ContentChunk(
                title=section_title,
                content=body,
                tags=self.tag_extractor.extract_tags(body, header=header),
                context=context,
                chunk_index=len(chunks),
                strategy=strategy,
            ))

        for fragment in dropped:
            logger.debug(f"Dropped sub-minimum fragment ({len(fragment)} chars): {fragment[:40]!r}")
        logger.debug(f"Chunked content into {len(chunks)} chunks using {strategy} strategy")

        return ChunkingReport(chunks=chunks, dropped=dropped, strategy=strategy)

    def _enforce_max_size(
        self,
        sections: list[tuple[str, str, Optional[str]]],
    ) -> list[tuple[str, str, Optional[str]]]:
        result = []
        for section_title, body, header in sections:
            if len(body) <= self.max_chunk_size:
                result.append((section_title, body, header))
                continue
            for i, piece in enumerate(self._pack_sentences(body)):
                piece_title = section_title if i == 0 else f"{section_title} (cont. {i + 1})"
                result.append((piece_title, piece, header))
        return result

    # Strategy 1: headers

    def _heading_at(self, lines: list[str], index: int) -> Optional[str]:
        line = lines[index].strip()
        if not line:
            return None

        match = MARKDOWN_HEADER.match(lines[index])
        if match:
            return match.group(1).strip()

        match = COLON_TITLE.match(line)
        if match:
            return match.group(1).strip()

        match = NUMBERED_HEADING.match(line)
        if match and not line.endswith((".", "!", "?")):
            # Items inside a numbered list are not headings: a heading is
            # preceded by a blank line and not followed by another list item.
            previous_blank = index == 0 or not lines[index - 1].strip()
            following = next((l for l in lines[index + 1:] if l.strip()), "")
            if previous_blank and not LIST_ITEM.match(following):
                return match.group(1).strip()

        return None

    def _split_by_headers(self, text: str, fallback_title: str):
        lines = text.splitlines()
        sections: list[tuple[Optional[str], list[str]]] = []
        current_title: Optional[str] = None
        current_lines: list[str] = []
        heading_count = 0

        for index in range(len(lines)):
            heading = self._heading_at(lines, index)
            if heading is None:
                current_lines.append(lines[index])
                continue
            heading_count += 1
            sections.append((current_title, current_lines))
            current_title = heading
            current_lines = []
        sections.append((current_title, current_lines))

        if heading_count == 0:
            return [], [], "headers"

        kept = []
        dropped = []
        for heading, body_lines in sections:
            body = "\n".join(body_lines).strip()
            if len(body) < self.min_chunk_size:
                if body or heading:
                    dropped.append(f"{heading}\n{body}".strip() if heading else body)
                continue
            kept.append((heading or fallback_title, body, heading))

        return kept, dropped, "headers"

    # Strategy 2: paragraphs

    def _split_by_paragraphs(self, text: str, fallback_title: str):
        kept = []
        dropped = []
        for paragraph in PARAGRAPH_BREAK.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) < self.min_chunk_size:
                dropped.append(paragraph)
                continue
            kept.append((self._derive_title(paragraph, fallback_title, len(kept) + 1), paragraph, None))
        return kept, dropped, "paragraphs"

    def _derive_title(self, paragraph: str, fallback_title: str, position: int) -> str:
        first_line = paragraph.splitlines()[0].strip()
        first_line = re.sub(r"^(?:#{1,6}|[-*•]|\d+[.)])\s+", "", first_line).rstrip(":")
        if not first_line:
            return f"{fallback_title} (part {position})"
        if len(first_line) <= 60:
            return first_line
        cut = first_line[:60].rsplit(" ", 1)[0]
        return f"{cut}..."

    # Strategy 3: sentence packing

    def _pack_sentences(self, text: str) -> list[str]:
        """Pack sentences into chunks of at most ``max_chunk_size`` characters.

        Every chunk except the last is at least ``min_chunk_size`` long.
        Sentences longer than ``max - min`` are pre-split on word boundaries so
        an under-minimum buffer can always absorb the next piece.
        """
        piece_limit = self.max_chunk_size - self.min_chunk_size
        pieces: list[str] = []
        for sentence in SENTENCE_BREAK.split(text):
            sentence = " ".join(sentence.split())
            if sentence:
                pieces.extend(self._split_long(sentence, piece_limit))

        chunks = []
        buffer = ""
        for piece in pieces:
            if not buffer:
                buffer = piece
                continue
            if len(buffer) + 1 + len(piece) > self.max_chunk_size and len(buffer) >= self.min_chunk_size:
                chunks.append(buffer)
                buffer = piece
            else:
                buffer = f"{buffer} {piece}"
        if buffer:
            chunks.append(buffer)

        return chunks

    @staticmethod
    def _split_long(sentence: str, limit: int) -> list[str]:
        if len(sentence) <= limit:
            return [sentence]

        parts = []
        current = ""
        for word in sentence.split(" "):
            while len(word) > limit:
                if current:
                    parts.append(current)
                    current = ""
                parts.append(word[:limit])
                word = word[limit:]
            if not current:
                current = word
            elif len(current) + 1 + len(word) <= limit:
                current = f"{current} {word}"
            else:
                parts.append(current)
                current = word
        if current:
            parts.append(current)
        return parts
