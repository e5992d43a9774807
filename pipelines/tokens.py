"""Token-length helpers for prompt budgeting."""

# Same rough estimate the chunker uses: ~4 characters per token for English
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return len(text or '') // CHARS_PER_TOKEN


def truncate_to_token_length(text: str, max_tokens: float) -> str:
    """Cut ``text`` down to roughly ``max_tokens`` tokens.

    Cuts back to the last whitespace inside the allowance when there is one,
    so words are not split in half.
    """
    if not text:
        return ''
    max_chars = int(max_tokens * CHARS_PER_TOKEN)
    if max_chars <= 0:
        return ''
    if len(text) <= max_chars:
        return text

    cut = text[:max_chars]
    boundary = cut.rfind(' ')
    if boundary > max_chars // 2:
        cut = cut[:boundary]
    return cut.rstrip()
