"""
Gmail payload body decoding.

A payload either carries base64url body data directly or a list of
sub-parts of the same shape, nested to any depth.
"""

import base64
import string

URLSAFE_ALPHABET = frozenset(string.ascii_letters + string.digits + "-_")


def decode_part_data(data: str) -> str:
    """
    Decode base64url body data to text.

    Missing padding is repaired and undecodable bytes are replaced, so
    malformed input yields best-effort text instead of an exception.
    """
    if not data:
        return ""

    padded = data + "=" * (-len(data) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded)
    except (ValueError, TypeError):
        # Strip characters outside the base64url alphabet and retry
        cleaned = "".join(c for c in data if c in URLSAFE_ALPHABET)
        cleaned = cleaned[: len(cleaned) - len(cleaned) % 4] if len(cleaned) % 4 == 1 else cleaned
        try:
            raw = base64.urlsafe_b64decode(cleaned + "=" * (-len(cleaned) % 4))
        except (ValueError, TypeError):
            return ""

    return raw.decode("utf-8", errors="replace")


def decode_body(payload: dict) -> str:
    """
    Extract the text body of a (possibly multipart) Gmail payload.

    Body data on a part wins over its sub-parts. Sub-part texts are
    joined with a newline in their original order; a part with neither
    decodes to "".

    Uses an explicit stack so arbitrarily deep part trees are safe.

    Args:
        payload: Gmail message payload ({"body": {"data": ...}, "parts": [...]})

    Returns:
        Decoded body text
    """
    if not payload:
        return ""

    # Each frame: (pending parts, decoded texts so far)
    root_texts = []
    stack = [(iter([payload]), root_texts)]

    while stack:
        parts, texts = stack[-1]
        part = next(parts, None)

        if part is None:
            stack.pop()
            if stack:
                # Branch finished: join children into one text for the parent
                stack[-1][1].append("\n".join(texts))
            continue

        data = (part.get("body") or {}).get("data")
        if data:
            texts.append(decode_part_data(data))
        elif part.get("parts"):
            stack.append((iter(part["parts"]), []))
        else:
            texts.append("")

    return root_texts[0] if root_texts else ""
