from mailreader.services.mime_decoder import decode_body, decode_part_data

from conftest import b64


def test_body_data_decoded():
    assert decode_body({"body": {"data": b64("Hello there")}}) == "Hello there"


def test_nested_parts_joined_in_order():
    payload = {
        "parts": [
            {"body": {"data": b64("A")}},
            {"parts": [
                {"body": {"data": b64("B")}},
                {"body": {"data": b64("C")}},
            ]},
        ]
    }
    assert decode_body(payload) == "A\nB\nC"


def test_body_data_wins_over_parts():
    payload = {
        "body": {"data": b64("top")},
        "parts": [{"body": {"data": b64("ignored")}}],
    }
    assert decode_body(payload) == "top"


def test_empty_payloads():
    assert decode_body({}) == ""
    assert decode_body({"body": {"size": 0}}) == ""
    assert decode_body({"parts": []}) == ""


def test_part_without_data_contributes_empty_line():
    payload = {"parts": [{"body": {"data": b64("x")}}, {"body": {}}]}
    assert decode_body(payload) == "x\n"


def test_unicode_and_missing_padding():
    text = "Café ✓"
    assert decode_part_data(b64(text)) == text


def test_malformed_data_does_not_raise():
    assert isinstance(decode_part_data("@@not*base64!!"), str)
    assert isinstance(decode_part_data("a"), str)
    # Invalid UTF-8 bytes are replaced rather than raising
    assert decode_part_data("_w") == "�"


def test_deeply_nested_payload():
    payload = {"body": {"data": b64("leaf")}}
    for _ in range(5000):
        payload = {"parts": [payload]}
    assert decode_body(payload) == "leaf"
