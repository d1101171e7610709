from datetime import datetime
from pathlib import Path

from mailreader.errors import UpstreamServiceError
from mailreader.services import db_service, speech_service, summarizer

from conftest import make_message


# ============ AUTH ============

def test_register_and_login(client):
    response = client.post("/api/v1/auth/register", json={"email": "New@Example.com", "password": "secret123"})
    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["hasGmailAuth"] is False

    response = client.post("/api/v1/auth/login", json={"email": "new@example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["token"]

    profile = client.get("/api/v1/auth/profile", headers={"Authorization": f"Bearer {token}"})
    assert profile.json()["user"]["email"] == "new@example.com"


def test_register_validation(client, user):
    short = client.post("/api/v1/auth/register", json={"email": "x@example.com", "password": "123"})
    duplicate = client.post("/api/v1/auth/register", json={"email": "reader@example.com", "password": "secret123"})

    assert short.status_code == 400
    assert duplicate.status_code == 400


def test_login_bad_password(client, user):
    response = client.post("/api/v1/auth/login", json={"email": "reader@example.com", "password": "wrong-pass"})
    assert response.status_code == 401


def test_protected_endpoints_require_token(client):
    assert client.get("/api/v1/emails").status_code == 401
    assert client.post("/api/v1/sync", json={}).status_code == 401
    bad = client.get("/api/v1/auth/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert bad.status_code == 401


def test_update_profile_and_gmail_tokens(client, auth_headers):
    response = client.put(
        "/api/v1/auth/profile",
        json={"name": "Renamed", "preferences": {"auto_generate_audio": True}},
        headers=auth_headers
    )
    assert response.json()["user"]["name"] == "Renamed"
    assert response.json()["user"]["preferences"]["auto_generate_audio"] is True

    response = client.put(
        "/api/v1/auth/gmail-tokens",
        json={"accessToken": "a", "refreshToken": "r", "expiresIn": 1792400000000},
        headers=auth_headers
    )
    assert response.json()["hasGmailAuth"] is True

    profile = client.get("/api/v1/auth/profile", headers=auth_headers)
    assert profile.json()["user"]["hasGmailAuth"] is True


def test_gmail_tokens_rejects_out_of_range_expiry(client, auth_headers):
    response = client.put(
        "/api/v1/auth/gmail-tokens",
        json={"accessToken": "a", "expiresIn": 10 ** 20},
        headers=auth_headers
    )
    assert response.status_code == 422

    response = client.put(
        "/api/v1/auth/gmail-tokens",
        json={"accessToken": "a", "expiresIn": -1},
        headers=auth_headers
    )
    assert response.status_code == 422


# ============ GMAIL CONNECTION ============

def test_auth_url(client):
    response = client.get("/api/v1/gmail/auth-url")
    assert response.json()["authUrl"].startswith("https://accounts.example.com/")


def test_auth_callback_redirects_to_frontend(client):
    response = client.get("/api/v1/gmail/auth-callback?code=abc", follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "http://localhost:3000?code=abc"

    response = client.get("/api/v1/gmail/auth-callback?error=access_denied", follow_redirects=False)
    assert response.headers["location"] == "http://localhost:3000?error=access_denied"


def test_auth_callback_exchange_stores_credential(client, db, user, auth_headers):
    response = client.post("/api/v1/gmail/auth-callback", json={"code": "xyz"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["hasRefreshToken"] is True
    credential = db_service.get_credential(db, user.id)
    assert credential.access_token == "access-xyz"
    assert credential.refresh_token == "refresh-xyz"


def test_unread_emails(client, connected_user, auth_headers, mailbox):
    mailbox.add(make_message("u1", subject="Unread one", unread=True))

    response = client.post("/api/v1/gmail/unread-emails", json={"maxResults": 5}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["emails"][0]["subject"] == "Unread one"
    assert mailbox.list_calls == [("is:unread", 5)]


# ============ SYNC + ARCHIVE ============

def test_sync_then_browse(client, connected_user, auth_headers, mailbox):
    mailbox.add(*(make_message(f"m{i}", subject=f"Subject {i}",
                               date=f"Mon, {10 + i} Oct 2026 09:00:00 +0000") for i in range(5)))

    first = client.post("/api/v1/sync", json={"maxResults": 10}, headers=auth_headers)
    second = client.post("/api/v1/sync", headers=auth_headers)

    assert first.status_code == 200
    assert first.json() == {"success": True, "message": "Sync complete.", "stats": {"checked": 5, "added": 5}}
    assert second.json()["stats"] == {"checked": 5, "added": 0}

    listing = client.get("/api/v1/emails?limit=2", headers=auth_headers).json()
    assert listing["pagination"] == {"total": 5, "page": 1, "pages": 3}
    assert [e["subject"] for e in listing["emails"]] == ["Subject 4", "Subject 3"]

    email_id = listing["emails"][0]["id"]
    detail = client.get(f"/api/v1/emails/{email_id}", headers=auth_headers)
    assert detail.json()["from"] == "alice@example.com"
    assert detail.json()["body"] == "Body text"


def test_sync_rejects_unknown_date_filter(client, connected_user, auth_headers):
    response = client.post("/api/v1/sync", json={"dateFilter": "yesterday"}, headers=auth_headers)
    assert response.status_code == 422


def test_sync_without_gmail_renders_error(client, user, auth_headers):
    response = client.post("/api/v1/sync", json={}, headers=auth_headers)

    assert response.status_code == 401
    assert response.json() == {"error": "Gmail account not connected", "code": "gmail_not_connected"}


def test_sync_reauth_required(client, db, user, auth_headers):
    db_service.save_credential(db, user.id, access_token="expired-token")

    response = client.post("/api/v1/sync", json={}, headers=auth_headers)

    assert response.status_code == 401
    assert response.json()["code"] == "reauth_required"


def test_email_not_found(client, auth_headers):
    response = client.get("/api/v1/emails/999", headers=auth_headers)
    assert response.status_code == 404


def test_email_search(client, db, user, auth_headers):
    db_service.upsert_email(db, user.id, "g1", sender="a@example.com", date=datetime(2026, 10, 1), subject="Invoice")
    db_service.upsert_email(db, user.id, "g2", sender="b@example.com", date=datetime(2026, 10, 2), subject="Lunch")

    listing = client.get("/api/v1/emails?search=INVOICE", headers=auth_headers).json()

    assert [e["gmail_id"] for e in listing["emails"]] == ["g1"]
    assert listing["pagination"]["total"] == 1


# ============ COMPOSE / SUMMARIZE / ANALYSIS ============

def test_send_email(client, connected_user, auth_headers, mailbox):
    response = client.post(
        "/api/v1/email/send",
        json={"to": "bob@example.com", "subject": "Hi", "body": "Hello Bob"},
        headers=auth_headers
    )
    assert response.json() == {"success": True, "message": "Email sent successfully"}
    assert mailbox.sent == [("bob@example.com", "Hi", "Hello Bob")]


def test_send_email_requires_fields(client, connected_user, auth_headers):
    response = client.post("/api/v1/email/send", json={"to": "bob@example.com", "subject": "", "body": "x"},
                           headers=auth_headers)
    assert response.status_code == 400


def test_polish(client, auth_headers, monkeypatch):
    monkeypatch.setattr(summarizer, "polish_draft", lambda draft, tone: f"[{tone}] {draft}")

    response = client.post("/api/v1/email/polish", json={"draft": "hey bob"}, headers=auth_headers)

    assert response.json() == {"polished": "[professional] hey bob"}


def test_summarize(client, auth_headers, monkeypatch):
    monkeypatch.setattr(summarizer, "summarize_emails", lambda emails: f"{len(emails)} emails")

    empty = client.post("/api/v1/summarize/summarize", json={"emails": []}, headers=auth_headers)
    response = client.post("/api/v1/summarize/summarize", json={"emails": [{"subject": "a"}]}, headers=auth_headers)

    assert empty.status_code == 400
    assert response.json() == {"summary": "1 emails"}


def test_summarize_upstream_failure(client, auth_headers, monkeypatch):
    def fail(emails):
        raise UpstreamServiceError("Failed to summarize emails: timeout")

    monkeypatch.setattr(summarizer, "summarize_emails", fail)

    response = client.post("/api/v1/summarize/summarize", json={"emails": [{"subject": "a"}]}, headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["code"] == "upstream_service_error"


def test_analysis_lifecycle(client, auth_headers, monkeypatch):
    monkeypatch.setattr(summarizer, "analyze_emails", lambda emails: summarizer.normalize_profile({
        "interests": ["chess"],
        "jobTitle": "Engineer",
        "bestFriend": {"name": "Sam"},
        "frequentTopics": ["travel"],
    }))

    assert client.get("/api/v1/analysis/profile", headers=auth_headers).json() == {"profile": None}

    response = client.post("/api/v1/analysis/analyze", json={"emails": [{"subject": "a"}, {"subject": "b"}]},
                           headers=auth_headers)
    profile = response.json()["profile"]
    assert profile["interests"] == ["chess"]
    assert profile["jobTitle"] == "Engineer"
    assert profile["bestFriend"] == {"name": "Sam", "email": None}
    assert profile["frequentTopics"] == [{"topic": "travel", "frequency": 1}]
    assert profile["analyzedEmailCount"] == 2

    assert client.delete("/api/v1/analysis/profile", headers=auth_headers).status_code == 200
    assert client.delete("/api/v1/analysis/profile", headers=auth_headers).status_code == 404


# ============ AUDIO ============

def test_audio_generate_history_delete(client, auth_headers, tmp_path, monkeypatch):
    monkeypatch.setenv("AUDIO_DIR", str(tmp_path))
    voices_used = []

    def fake_synthesize(text, voice_id=None):
        voices_used.append(voice_id)
        return b"ID3fake-mp3"

    monkeypatch.setattr(speech_service, "synthesize", fake_synthesize)

    response = client.post("/api/v1/audio/generate", json={"text": "Your summary", "emailCount": 3},
                           headers=auth_headers)
    body = response.json()
    assert response.status_code == 200
    assert body["filename"].startswith("summary_") and body["filename"].endswith(".mp3")
    assert body["url"] == f"/audio/{body['filename']}"
    assert voices_used == ["21m00Tcm4TlvDq8ikWAM"]
    assert (Path(tmp_path) / body["filename"]).read_bytes() == b"ID3fake-mp3"

    history = client.get("/api/v1/audio/history", headers=auth_headers).json()["audioFiles"]
    assert history[0]["id"] == body["id"]
    assert history[0]["emailCount"] == 3
    assert history[0]["fileSize"] == len(b"ID3fake-mp3")

    assert client.delete(f"/api/v1/audio/{body['id']}", headers=auth_headers).status_code == 200
    assert not (Path(tmp_path) / body["filename"]).exists()
    assert client.delete(f"/api/v1/audio/{body['id']}", headers=auth_headers).status_code == 404


def test_audio_requires_api_key(client, auth_headers, monkeypatch):
    monkeypatch.delenv("ELEVENLABS_API_KEY", raising=False)

    response = client.get("/api/v1/audio/voices", headers=auth_headers)

    assert response.status_code == 500
    assert response.json()["code"] == "service_not_configured"


def test_health(client):
    assert client.get("/").json() == {"status": "ok"}
