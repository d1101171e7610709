"""
Email body cleanup ahead of LLM prompts: markup stripped, quoted
history and footers dropped, length capped per email.
"""

import re

from bs4 import BeautifulSoup

# Roughly 500 tokens per email
MAX_CHARS_PER_EMAIL = 2000

# A line matching one of these starts quoted history; it and everything below is dropped
REPLY_PATTERNS = [
    r'^on\s+.+wrote:\s*$',
    r'^-{2,}\s*original\s*message\s*-{2,}$',
    r'^-{2,}\s*forwarded\s*message\s*-{2,}$',
]

# Single lines (or fragments) that carry no content
NOISE_PATTERNS = [
    r'^>+.*$',
    r'\[(image|cid):.*?\]',
    r'sent\s*from\s*(my\s*)?(iphone|ipad|android|mobile).*$',
    r'get\s*outlook\s*for.*$',
    r'^unsubscribe.*$',
]

HTML_HINT = re.compile(r'<\s*(html|body|div|p|br|table|span|a)\b', re.IGNORECASE)
INVISIBLE_TAGS = ['script', 'style', 'head', 'meta', 'link', 'title']
BLOCK_TAGS = ['p', 'div', 'tr', 'li', 'h1', 'h2', 'h3']


def _collapse_whitespace(text: str) -> str:
    text = re.sub(r'[ \t\xa0]+', ' ', text)
    text = re.sub(r'\n\s*\n+', '\n\n', text)
    return text.strip()


def html_to_text(raw_html: str) -> str:
    """
    Plain text from an HTML (or already plain) email body.

    Line breaks survive for <br> and block elements so paragraphs stay
    apart in the prompt.
    """
    if not raw_html:
        return ""

    if not HTML_HINT.search(raw_html):
        return _collapse_whitespace(raw_html)

    soup = BeautifulSoup(raw_html, "html.parser")
    for element in soup(INVISIBLE_TAGS):
        element.decompose()
    for line_break in soup.find_all('br'):
        line_break.replace_with('\n')
    for block in soup.find_all(BLOCK_TAGS):
        block.insert_after('\n')

    return _collapse_whitespace(soup.get_text(separator=' '))


def remove_noise(text: str) -> str:
    """Drop quoted reply history, mobile footers and image placeholders."""
    kept = []
    for line in (text or "").splitlines():
        normalized = line.strip().lower()
        if any(re.match(p, normalized) for p in REPLY_PATTERNS):
            break
        if not any(re.search(p, normalized) for p in NOISE_PATTERNS):
            kept.append(line)

    return re.sub(r'\n{3,}', '\n\n', '\n'.join(kept)).strip()


def trim_text(text: str, max_chars: int = MAX_CHARS_PER_EMAIL) -> str:
    """Cap text length, cutting at the last line break that fits when possible."""
    if len(text) <= max_chars:
        return text

    cut = text.rfind('\n', 0, max_chars)
    if cut < max_chars // 2:
        cut = max_chars
    return text[:cut].rstrip() + " ..."


def prepare_for_prompt(body: str, max_chars: int = MAX_CHARS_PER_EMAIL) -> str:
    """Full cleaning pipeline: HTML → text → noise removal → length cap."""
    return trim_text(remove_noise(html_to_text(body)), max_chars)
