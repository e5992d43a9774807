"""Document chunking pipeline for linkfoundry.

Splits parsed Markdown documents into heading-aware chunks with stable ids,
so the same page parsed by the same engine version always yields the same
chunk ids.
"""

import logging
import re
import hashlib
from typing import List, Dict, Any, Tuple
from dataclasses import dataclass

from services.weblink.types import ParsedDocument

logger = logging.getLogger(__name__)


@dataclass
class DocumentChunk:
    """Represents a chunk of a document."""
    id: str
    document_id: str
    chunk_index: int
    content: str
    content_hash: str
    token_count: int
    metadata: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "chunk_index": self.chunk_index,
            "content": self.content,
            "content_hash": self.content_hash,
            "token_count": self.token_count,
            "metadata": self.metadata
        }


class DocumentChunker:
    """Chunks parsed documents into smaller pieces for embedding."""

    def __init__(self,
                 max_tokens: int = 512,
                 overlap_tokens: int = 64,
                 min_chunk_chars: int = 20):
        """Initialize chunker.

        Args:
            max_tokens: Maximum tokens per chunk
            overlap_tokens: Token overlap between sentence-split chunks
            min_chunk_chars: Chunks shorter than this are dropped
        """
        self.max_tokens = max_tokens
        self.overlap_tokens = overlap_tokens
        self.min_chunk_chars = min_chunk_chars
        # Simple token estimation: ~4 chars per token for English
        self.chars_per_token = 4

    def _estimate_tokens(self, text: str) -> int:
        return len(text) // self.chars_per_token

    def _extract_headings(self, md: str) -> List[Tuple[int, str, int]]:
        """Extract headings with their levels, text, and positions.
        Returns: [(level, text, start_pos), ...]
        """
        headings = []
        pos = 0
        for line in md.split('\n'):
            match = re.match(r'^(#{1,6})\s+(.+)$', line.strip())
            if match:
                headings.append((len(match.group(1)), match.group(2).strip(), pos))
            pos += len(line) + 1
        return headings

    def _heading_paths(self, headings: List[Tuple[int, str, int]]) -> List[List[str]]:
        """Heading path (h1 > h2 > ...) in effect under each heading."""
        paths = []
        current_path: List[str] = []
        for level, text, _ in headings:
            if level <= len(current_path):
                current_path = current_path[:level - 1] + [text]
            else:
                while len(current_path) < level - 1:
                    current_path.append("")
                current_path.append(text)
            paths.append(current_path.copy())
        return paths

    def _generate_stable_chunk_id(self, doc_id: str, h_path: List[str], offset: int) -> str:
        """Deterministic chunk ID based on document, heading path, and offset."""
        path_str = "|".join(h_path) if h_path else "root"
        content = f"{doc_id}#{path_str}#{offset}"
        return hashlib.md5(content.encode()).hexdigest()[:12]

    def _split_by_sentences(self, text: str, max_chars: int, overlap_chars: int) -> List[str]:
        """Split text by sentences with overlap, respecting sentence boundaries."""
        sentences = re.split(r'(?<=[.!?])\s+', text)

        chunks = []
        current_chunk = ""

        for sentence in sentences:
            if current_chunk and len(current_chunk) + 1 + len(sentence) > max_chars:
                chunks.append(current_chunk.strip())

                # Start new chunk with overlap from previous chunk
                if overlap_chars > 0 and len(current_chunk) > overlap_chars:
                    overlap_sentences = re.split(r'(?<=[.!?])\s+', current_chunk[-overlap_chars:])
                    if len(overlap_sentences) > 1:
                        current_chunk = ' '.join(overlap_sentences[1:]) + ' ' + sentence
                    else:
                        current_chunk = sentence
                else:
                    current_chunk = sentence
            else:
                current_chunk += (" " if current_chunk else "") + sentence

        if current_chunk.strip():
            chunks.append(current_chunk.strip())

        return chunks

    def _sections(self, md: str) -> List[Tuple[List[str], str]]:
        headings = self._extract_headings(md)
        if not headings:
            return [([], md.strip())]

        sections = []
        preamble = md[:headings[0][2]].strip()
        if preamble:
            sections.append(([], preamble))
        for i, ((_, _, pos), h_path) in enumerate(zip(headings, self._heading_paths(headings))):
            end_pos = headings[i + 1][2] if i + 1 < len(headings) else len(md)
            section_text = md[pos:end_pos].strip()
            if section_text:
                sections.append((h_path, section_text))
        return sections

    def chunk_document(self, doc: ParsedDocument) -> List[DocumentChunk]:
        """Chunk a single parsed document."""
        content = doc.page_content or ''
        if not content.strip():
            return []

        url = doc.source or ''
        doc_id = hashlib.sha256(url.encode()).hexdigest()[:16]
        max_chars = self.max_tokens * self.chars_per_token
        overlap_chars = self.overlap_tokens * self.chars_per_token

        chunks: List[DocumentChunk] = []
        offset = 0
        for h_path, section_text in self._sections(content):
            if len(section_text) <= max_chars:
                pieces = [section_text]
            else:
                pieces = self._split_by_sentences(section_text, max_chars, overlap_chars)

            for piece in pieces:
                if len(piece) < self.min_chunk_chars:
                    continue
                chunks.append(DocumentChunk(
                    id=self._generate_stable_chunk_id(doc_id, h_path, offset),
                    document_id=doc_id,
                    chunk_index=len(chunks),
                    content=piece,
                    content_hash=hashlib.sha256(piece.encode()).hexdigest(),
                    token_count=self._estimate_tokens(piece),
                    metadata={
                        'url': url,
                        'title': doc.title or '',
                        'h_path': h_path,
                        'heading': h_path[-1] if h_path else None,
                    },
                ))
                offset += 1

        logger.debug(f"Created {len(chunks)} chunks for document {url}")
        return chunks
