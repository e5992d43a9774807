"""Tests for HTML parsing and the uploaded-content path."""

import pytest

from pipelines.crawler import FetchError
from pipelines.parser import ContentParser, extract_title, html_to_markdown
from services.weblink.types import WeblinkJobData

ARTICLE_HTML = """
<html>
  <head><title>Event Loops Explained</title><script>var x = 1;</script></head>
  <body>
    <nav>Home | About</nav>
    <article>
      <h1>Event Loops Explained</h1>
      <p>An event loop runs callbacks and coroutines one after another on a single thread.
         It waits for I/O readiness and resumes whichever task can make progress next.</p>
      <p>Understanding it helps when debugging slow asynchronous services in production.</p>
    </article>
  </body>
</html>
"""


def test_html_to_markdown_keeps_main_text():
    md = html_to_markdown(ARTICLE_HTML)
    assert "event loop runs callbacks" in md
    assert "var x = 1" not in md


def test_html_to_markdown_falls_back_to_plain_text():
    md = html_to_markdown("<div><span>tiny</span></div>")
    assert md == "tiny"


def test_extract_title():
    assert extract_title(ARTICLE_HTML) == "Event Loops Explained"
    assert extract_title("<html><body><h1>Only heading</h1></body></html>") == "Only heading"
    assert extract_title("<p>nothing</p>") is None


@pytest.mark.asyncio
async def test_fetch_and_parse_builds_document(reader, sample_url, sample_page):
    parser = ContentParser(reader)
    doc = await parser.fetch_and_parse(sample_url)

    assert doc.page_content == sample_page['content']
    assert doc.title == "Async Python"
    assert doc.source == sample_url
    assert doc.metadata['publishedTime'] == sample_page['publishedTime']


@pytest.mark.asyncio
async def test_fetch_and_parse_propagates_fetch_error(reader):
    parser = ContentParser(reader)
    with pytest.raises(FetchError):
        await parser.fetch_and_parse("https://unknown.example.org")


@pytest.mark.asyncio
async def test_parse_uploaded(reader, artifact_store):
    artifact_store.objects["uploads/page.html"] = ARTICLE_HTML.encode()
    link = WeblinkJobData(url="https://blog.example.com/loops", storage_key="uploads/page.html")

    data = await ContentParser(reader).parse_uploaded(link, artifact_store)

    assert data is not None
    assert data.html == ARTICLE_HTML
    assert "event loop" in data.doc.page_content
    assert data.doc.title == "Event Loops Explained"
    assert data.doc.source == "https://blog.example.com/loops"
    assert reader.calls == []


@pytest.mark.asyncio
async def test_parse_uploaded_prefers_client_title(reader, artifact_store):
    artifact_store.objects["uploads/page.html"] = ARTICLE_HTML.encode()
    link = WeblinkJobData(url="https://blog.example.com/loops", storage_key="uploads/page.html",
                          title="Saved from extension")

    data = await ContentParser(reader).parse_uploaded(link, artifact_store)
    assert data.doc.title == "Saved from extension"


@pytest.mark.asyncio
async def test_parse_uploaded_returns_none_when_missing(reader, artifact_store):
    link = WeblinkJobData(url="https://blog.example.com/loops", storage_key="uploads/missing.html")
    assert await ContentParser(reader).parse_uploaded(link, artifact_store) is None


@pytest.mark.asyncio
async def test_parse_uploaded_returns_none_when_conversion_crashes(reader, artifact_store, monkeypatch):
    def broken(html):
        raise RuntimeError("parser blew up")

    monkeypatch.setattr("pipelines.parser.html_to_markdown", broken)
    artifact_store.objects["uploads/page.html"] = ARTICLE_HTML.encode()
    link = WeblinkJobData(url="https://blog.example.com/loops", storage_key="uploads/page.html")

    assert await ContentParser(reader).parse_uploaded(link, artifact_store) is None
