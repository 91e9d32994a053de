"""
RAG Chunker
===========

Splits documents into overlapping character windows for embedding.

Rules:
- Chunk size: 500-1000 characters (configurable)
- Overlap: 100 characters between consecutive chunks
- Break preference: sentence end > paragraph break > word boundary > hard cut
- Stable chunking (same input = same chunks)
"""

import logging
import re
from typing import List, Optional

from .exceptions import InvalidChunkOptionsError
from .models import Chunk, ChunkOptions

logger = logging.getLogger(__name__)


SENTENCE_END = re.compile(r'[.!?]\s+')
PARAGRAPH_BREAK = re.compile(r'\n\n+')


class RAGChunker:
    """
    Splits documents into overlapping chunks.

    Each window is at most max_size characters. When the window does not reach
    the end of the document, it is shortened to the latest natural break point
    found at least min_size characters in.
    """

    def __init__(self, options: Optional[ChunkOptions] = None):
        self.options = options or ChunkOptions()
        self._validate(self.options)

    @staticmethod
    def _validate(options: ChunkOptions):
        if options.min_size < 1:
            raise InvalidChunkOptionsError("min_size must be positive")
        if options.max_size < options.min_size:
            raise InvalidChunkOptionsError("max_size cannot be smaller than min_size")
        if options.overlap < 0 or options.overlap >= options.max_size:
            raise InvalidChunkOptionsError("overlap must be in [0, max_size)")

    def chunk(self, document: str) -> List[Chunk]:
        """
        Split a document into chunks.

        Args:
            document: Raw document text

        Returns:
            Chunks ordered by index, with absolute character spans
        """
        if not document:
            return []

        min_size = self.options.min_size
        max_size = self.options.max_size
        overlap = self.options.overlap
        length = len(document)

        if length <= min_size:
            return [Chunk(content=document, index=0, start_char=0, end_char=length)]

        chunks = []
        start = 0

        while start < length:
            end = min(start + max_size, length)

            if end < length:
                breakpoint_ = self._find_break_point(document[start:end], min_size)
                if breakpoint_ > 0:
                    end = start + breakpoint_

            chunks.append(Chunk(
                content=document[start:end],
                index=len(chunks),
                start_char=start,
                end_char=end,
            ))

            if end >= length:
                break

            next_start = end - overlap
            # No overlap when it would not move forward
            start = next_start if next_start > start else end

        logger.debug(f"Chunked {length} chars into {len(chunks)} chunks")
        return chunks

    def _find_break_point(self, text: str, min_position: int) -> int:
        """
        Find the offset to cut the window at.

        Returns:
            Offset into text, or 0 when no break qualifies
        """
        for pattern in (SENTENCE_END, PARAGRAPH_BREAK):
            last = 0
            for match in pattern.finditer(text):
                position = match.end()
                if min_position <= position < len(text):
                    last = position
            if last:
                return last

        last_space = text.rfind(' ')
        if last_space >= min_position:
            return last_space + 1

        return 0


def chunk_document(document: str, options: Optional[ChunkOptions] = None) -> List[Chunk]:
    """Chunk a document with default or given options."""
    return RAGChunker(options).chunk(document)
