import pytest

from mailreader.errors import ServiceNotConfigured
from mailreader.services import summarizer
from mailreader.services.text_cleaner import html_to_text, prepare_for_prompt, remove_noise, trim_text


def test_html_to_text():
    html = "<html><head><style>p {color: red}</style></head><body><p>Hello</p><p>World<br>again</p></body></html>"
    text = html_to_text(html)

    assert "color" not in text
    assert [line.strip() for line in text.splitlines()] == ["Hello", "World", "again"]


def test_plain_text_passes_through():
    assert html_to_text("Price < 5 and > 2") == "Price < 5 and > 2"


def test_remove_noise_drops_reply_history():
    text = "Thanks!\nSent from my iPhone\n> old quote\nOn Mon, Oct 12, 2026 Bob wrote:\nolder stuff"
    assert remove_noise(text) == "Thanks!"


def test_trim_text():
    assert trim_text("short", 10) == "short"
    trimmed = trim_text("line one\nline two\nline three", 20)
    assert trimmed == "line one\nline two ..."


def test_format_emails_prefers_snippet():
    prompt = summarizer.format_emails_for_prompt([
        {"from": "alice@example.com", "subject": "Hi", "date": "2026-10-12", "snippet": "short version"},
        {"from": "bob@example.com", "subject": "Report", "body": "<p>Full <b>report</b></p>"},
    ])

    assert "Email 1:\nFrom: alice@example.com\nSubject: Hi" in prompt
    assert "Content: short version" in prompt
    assert "Email 2:" in prompt
    assert "Content: Full report" in prompt


def test_prepare_for_prompt_caps_length():
    assert len(prepare_for_prompt("x" * 5000)) <= 2004


def test_normalize_profile_tolerates_bad_types():
    profile = summarizer.normalize_profile({
        "interests": "not a list",
        "hobbies": ["running", None],
        "supervisor": {"email": "boss@example.com"},
        "location": {"city": "Lisbon"},
        "closeContacts": [{"name": "Sam"}, "junk"],
        "frequentTopics": [{"topic": "budget", "frequency": "many"}],
        "communicationStyle": "",
    })

    assert profile["interests"] == []
    assert profile["hobbies"] == ["running"]
    assert profile["supervisor"] is None
    assert profile["location"] == {"city": "Lisbon", "state": None, "country": None}
    assert profile["close_contacts"] == [{"name": "Sam", "email": None, "relationship": "unknown"}]
    assert profile["frequent_topics"] == [{"topic": "budget", "frequency": 1}]
    assert profile["communication_style"] is None
    assert profile["insights"] == ""


def test_llm_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)

    with pytest.raises(ServiceNotConfigured):
        summarizer.summarize_emails([{"subject": "a"}])
