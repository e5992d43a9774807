from pipelines.chunker import DocumentChunker
from services.weblink.types import ParsedDocument

MARKDOWN = """Intro paragraph before any heading, long enough to keep.

# Header 1

This is some content under header 1.

## Header 2

This is content under header 2 with more text to make it longer.

### Header 3

And even more content here to test the chunking behavior."""


def _doc(content: str, url: str = "https://a.com/doc") -> ParsedDocument:
    return ParsedDocument(page_content=content, metadata={'title': 'Doc', 'source': url})


def test_chunker_follows_headings():
    """Each section becomes a chunk carrying its heading path."""
    chunks = DocumentChunker().chunk_document(_doc(MARKDOWN))

    assert [c.metadata['heading'] for c in chunks] == [None, "Header 1", "Header 2", "Header 3"]
    assert chunks[3].metadata['h_path'] == ["Header 1", "Header 2", "Header 3"]
    assert all(c.metadata['url'] == "https://a.com/doc" for c in chunks)
    assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]


def test_chunker_ids_are_stable():
    """Same document, same ids; another URL, other ids."""
    first = DocumentChunker().chunk_document(_doc(MARKDOWN))
    second = DocumentChunker().chunk_document(_doc(MARKDOWN))
    other = DocumentChunker().chunk_document(_doc(MARKDOWN, url="https://b.com/doc"))

    assert [c.id for c in first] == [c.id for c in second]
    assert not set(c.id for c in first) & set(c.id for c in other)


def test_chunker_splits_long_sections():
    """Sections over the token limit are split on sentence boundaries."""
    sentence = "This sentence is about forty characters. "
    text = "# Long\n\n" + sentence * 100
    chunker = DocumentChunker(max_tokens=50, overlap_tokens=0)

    chunks = chunker.chunk_document(_doc(text))

    assert len(chunks) > 1
    assert all(len(c.content) <= 50 * chunker.chars_per_token for c in chunks)
    assert len({c.id for c in chunks}) == len(chunks)


def test_chunker_empty_text():
    assert DocumentChunker().chunk_document(_doc("")) == []
    assert DocumentChunker().chunk_document(_doc("   \n")) == []


def test_chunker_plain_text_without_headings():
    chunks = DocumentChunker().chunk_document(_doc("Just one plain paragraph of text without headings."))
    assert len(chunks) == 1
    assert chunks[0].metadata['h_path'] == []
    assert chunks[0].token_count == len(chunks[0].content) // 4
