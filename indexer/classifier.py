"""Content classification (topic tagging) for parsed pages."""

import json
import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError

from services.weblink.types import ParsedDocument
from pipelines.tokens import truncate_to_token_length

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You classify web pages. Reply with a JSON object of the form "
    '{"topics": [{"key": "<slug>", "name": "<display name>", "score": <0..1>}]} '
    "listing at most 3 topics, most relevant first."
)


def is_valid_content_meta(meta: Optional[Dict[str, Any]]) -> bool:
    """A usable result has at least one topic, and the first topic has a key."""
    if not isinstance(meta, dict):
        return False
    topics = meta.get('topics')
    if not isinstance(topics, list) or not topics:
        return False
    first = topics[0]
    return isinstance(first, dict) and bool(first.get('key'))


class ContentClassifier:
    """Asks a chat model for the topics of a document."""

    def __init__(self, api_key: Optional[str] = None, model: str = "gpt-4o-mini",
                 max_input_tokens: int = 3000, client: Optional[AsyncOpenAI] = None):
        self.model = model
        self.max_input_tokens = max_input_tokens
        self._client = client or AsyncOpenAI(api_key=api_key)

    async def classify(self, doc: ParsedDocument) -> Dict[str, Any]:
        """Return ``{"topics": [...]}``, or an empty dict when the model gives nothing usable."""
        content = truncate_to_token_length(doc.page_content, self.max_input_tokens)
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": f"Title: {doc.title or ''}\n\n{content}"},
                ],
            )
        except OpenAIError as e:
            logger.error(f"Classification request failed for {doc.source}: {e}")
            return {}

        raw = response.choices[0].message.content or ''
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Classifier returned non-JSON output for {doc.source}")
            return {}
