"""HTTP-level tests for the nungdict API routes."""
import pytest

import auth
import routes
import translate_routes
from errors import RemoteResolutionError
from models import TranslationPayload
from storage import transaction


# --- Translation ---

def test_resolve_endpoint_uses_all_tiers(client, admin_headers, remote):
    resp = client.post("/api/resolve", json={"text": "Tôi muốn đi ngủ cơm", "target_language": "nung"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["translation"] == "khỏi ắt pay nòn khẩu"
    assert data["api_called"] is True
    assert [e["note"] for e in data["breakdown"]] == ["direct", "api", "direct", "inferred"]
    assert data["stats"]["total_spans"] == 4
    assert remote.calls == [(["muốn"], "nung")]

    # remote translations are queued for review
    queued = client.get("/api/admin/contributions", headers=admin_headers).json()
    assert [(c["word"], c["translation"], c["region"]) for c in queued["contributions"]] == [
        ("muốn", "ắt", "API Discovery"),
    ]


def test_resolve_can_skip_saving_discoveries(client, admin_headers):
    resp = client.post("/api/resolve", json={"text": "muốn", "save_discoveries": False})
    assert resp.status_code == 200
    assert client.get("/api/admin/contributions", headers=admin_headers).json()["total"] == 0


@pytest.mark.parametrize("body", [
    {"text": ""},
    {"text": "   "},
    {"text": "?!..."},
    {"text": "x" * 501},
    {"text": "tôi", "target_language": "fr"},
])
def test_resolve_rejects_bad_input(client, body):
    assert client.post("/api/resolve", json=body).status_code == 400


def test_resolve_without_loaded_dictionary(client, app):
    del app.state.resolver
    assert client.post("/api/resolve", json={"text": "tôi"}).status_code == 503


def test_resolve_is_rate_limited(client, monkeypatch):
    monkeypatch.setattr(auth, "RATE_LIMIT_REQUESTS", 2)
    for _ in range(2):
        assert client.post("/api/resolve", json={"text": "tôi"}).status_code == 200
    resp = client.post("/api/resolve", json={"text": "tôi"})
    assert resp.status_code == 429


def test_preview_endpoint(client, remote):
    resp = client.post("/api/preview", json={"text": "Tôi muốn đi ngủ cơm"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["needs_lookup"] == ["muốn"]
    assert data["coverage"] == 75
    assert remote.calls == []


def test_translate_endpoint_caches(client, monkeypatch):
    calls = []

    async def fake_translate(text, target_lang, source_lang, resolver):
        calls.append((text, target_lang, source_lang))
        return TranslationPayload(translations=[{"language": "Tiếng Nùng", "script": "Khỏi pay nòn"}])

    monkeypatch.setattr(translate_routes, "translate_text", fake_translate)
    body = {"text": "Tôi đi ngủ", "target_language": "nung", "source_language": "vi"}

    first = client.post("/api/translate", json=body)
    assert first.status_code == 200
    assert first.json()["translations"][0]["script"] == "Khỏi pay nòn"
    assert first.json()["source_language"] == "vi"

    second = client.post("/api/translate", json={**body, "text": "  tôi đi ngủ "})
    assert second.json() == {**first.json()}
    assert len(calls) == 1


def test_translate_endpoint_llm_failure(client, monkeypatch):
    async def failing_translate(text, target_lang, source_lang, resolver):
        raise RemoteResolutionError("LLM API error")

    monkeypatch.setattr(translate_routes, "translate_text", failing_translate)
    resp = client.post("/api/translate", json={"text": "Tôi đi ngủ"})
    assert resp.status_code == 502


@pytest.mark.parametrize("body", [
    {"text": "tôi", "target_language": "fr"},
    {"text": "tôi", "target_language": "vi", "source_language": "vi"},
])
def test_translate_endpoint_validates_languages(client, body):
    assert client.post("/api/translate", json=body).status_code == 400


def test_spell_check_endpoint(client, monkeypatch):
    async def fake_check(text):
        return "Tôi đi học"

    monkeypatch.setattr(translate_routes, "check_spelling", fake_check)
    resp = client.post("/api/spell-check", json={"text": "Toi di hoc"})
    assert resp.json() == {"suggestion": "Tôi đi học"}


def test_chat_endpoint(client, monkeypatch):
    seen = {}

    async def fake_chat(history, message):
        seen["history"] = history
        return "Chào bạn!"

    monkeypatch.setattr(translate_routes, "send_chat_message", fake_chat)
    resp = client.post("/api/chat", json={
        "message": "Xin chào",
        "history": [{"role": "user", "content": "Hi"}],
    })
    assert resp.json() == {"reply": "Chào bạn!"}
    assert seen["history"] == [{"role": "user", "content": "Hi"}]


# --- Reference ---

def test_languages_endpoint(client):
    data = client.get("/api/languages").json()
    assert {item["code"]: item["has_dictionary"] for item in data} == {
        "vi": False, "nung": True, "central": True,
    }


def test_health_endpoint(client, monkeypatch):
    async def reachable():
        return True

    monkeypatch.setattr(routes, "check_llm_connectivity", reachable)
    data = client.get("/api/health").json()
    assert data["status"] == "ok"
    assert data["llm"]["reachable"] is True
    assert data["dictionaries"]["central"] == 4


# --- Dictionary ---

def test_dictionary_lookup(client):
    resp = client.get("/api/dictionary/lookup", params={"word": "Con Lợn"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "dictionary"
    assert data["word"] == "con lợn"
    assert data["variants"] == ["tua mu", "Tu mu"]

    inferred = client.get("/api/dictionary/lookup", params={"word": "cơm"}).json()
    assert inferred["source"] == "inferred"
    assert inferred["translation"] == "khẩu"

    assert client.get("/api/dictionary/lookup", params={"word": "muốn"}).status_code == 404
    assert client.get("/api/dictionary/lookup", params={"word": "tôi", "lang": "fr"}).status_code == 400


def test_reverse_lookup_endpoint(client):
    data = client.get("/api/dictionary/reverse", params={"text": "tua mu"}).json()
    assert data["direct"][0]["vietnamese"] == ["con lợn"]
    assert data["not_found"] == []


def test_inferred_vocabulary_endpoint(client):
    data = client.get("/api/dictionary/inferred", params={"lang": "nung"}).json()
    assert data["count"] == 1
    assert data["words"][0]["word"] == "cơm"


def test_contribution_requires_login(client, user_headers):
    body = {"word": "muốn", "translation": "ắt", "target_language": "nung"}
    assert client.post("/api/contributions", json=body).status_code == 401

    resp = client.post("/api/contributions", json=body, headers=user_headers)
    assert resp.status_code == 200
    assert resp.json()["contributor_id"] == "user-alice"
    assert resp.json()["status"] == "pending"

    bad = client.post("/api/contributions", json={**body, "target_language": "vi"}, headers=user_headers)
    assert bad.status_code == 400


def test_approved_contribution_reaches_resolver(client, app, user_headers, admin_headers):
    created = client.post("/api/contributions", headers=user_headers,
                          json={"word": "muốn", "translation": "ắt", "target_language": "nung"}).json()
    assert client.get("/api/dictionary/lookup", params={"word": "muốn"}).status_code == 404

    resp = client.post(f"/api/admin/contributions/{created['id']}/review",
                       json={"decision": "approved"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["reviewed_by"] == "mod-1"

    lookup = client.get("/api/dictionary/lookup", params={"word": "muốn"}).json()
    assert lookup["source"] == "dictionary"
    assert lookup["script"] == "ắt"
    assert "muốn" not in app.state.base_dictionaries["nung"]


def test_review_missing_contribution(client, admin_headers):
    resp = client.post("/api/admin/contributions/999/review", json={"decision": "rejected"}, headers=admin_headers)
    assert resp.status_code == 404


def test_empty_first_variant_never_approved(client, user_headers, admin_headers):
    body = {"word": "muốn", "translation": "/ ắt", "target_language": "nung"}
    assert client.post("/api/contributions", json=body, headers=user_headers).status_code == 400

    with transaction() as conn:
        contribution_id = conn.execute(
            "INSERT INTO contributions (word, translation, target_lang, created_at) VALUES (?, ?, 'nung', 0)",
            ("muốn", "/ ắt"),
        ).lastrowid
    resp = client.post(f"/api/admin/contributions/{contribution_id}/review",
                       json={"decision": "approved"}, headers=admin_headers)
    assert resp.status_code == 400
    assert client.get("/api/dictionary/lookup", params={"word": "muốn"}).status_code == 404


# --- Discussion ---

def _post(client, headers, content, parent_id=None, text="Tôi muốn đi ngủ"):
    resp = client.post("/api/discussions", headers=headers, json={
        "original_text": text,
        "target_language": "nung",
        "content": content,
        "parent_id": parent_id,
    })
    return resp


def test_discussion_requires_login(client):
    assert _post(client, {}, "Hay quá").status_code == 401


def test_discussion_thread_flow(client, user_headers):
    bob = {"X-User-Id": "user-bob"}
    root = _post(client, user_headers, "Hay quá").json()
    reply = _post(client, bob, "Đồng ý", parent_id=root["id"]).json()
    assert reply["depth"] == 2

    like = client.post(f"/api/discussions/{reply['id']}/like", headers=user_headers)
    assert like.json() == {"liked": True, "like_count": 1}

    resp = client.get("/api/discussions", params={"original_text": "tôi muốn đi ngủ", "target_language": "nung"},
                      headers=user_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["key"] == root["subject_key"]
    thread = data["discussions"][0]
    assert thread["replies"][0]["content"] == "Đồng ý"
    assert thread["replies"][0]["liked_by_viewer"] is True
    assert thread["liked_by_viewer"] is False

    by_key = client.get("/api/discussions", params={"key": root["subject_key"]}).json()
    assert by_key["discussions"][0]["liked_by_viewer"] is None


def test_discussion_errors(client, user_headers):
    assert _post(client, user_headers, "   ").status_code == 400
    assert _post(client, user_headers, "reply", parent_id=12345).status_code == 404
    assert client.get("/api/discussions").status_code == 400
    assert client.get("/api/discussions", params={"key": "tr_x", "sort": "random"}).status_code == 400
    assert client.get("/api/discussions", params={"key": "tr_x", "page_size": 1000}).status_code == 400
    assert client.post("/api/discussions/999/like", headers=user_headers).status_code == 404


def test_only_author_can_edit_or_delete(client, user_headers):
    bob = {"X-User-Id": "user-bob"}
    root = _post(client, user_headers, "Hay quá").json()

    assert client.patch(f"/api/discussions/{root['id']}", json={"content": "x"}, headers=bob).status_code == 403
    assert client.delete(f"/api/discussions/{root['id']}", headers=bob).status_code == 403
    assert client.patch("/api/discussions/999", json={"content": "x"}, headers=bob).status_code == 404

    edited = client.patch(f"/api/discussions/{root['id']}", json={"content": "Hay lắm"}, headers=user_headers)
    assert edited.json()["content"] == "Hay lắm"

    _post(client, bob, "reply", parent_id=root["id"])
    deleted = client.delete(f"/api/discussions/{root['id']}", headers=user_headers)
    assert deleted.json() == {"ok": True, "deleted": 2}


# --- Moderation ---

def test_admin_routes_require_token(client, user_headers):
    assert client.get("/api/admin/reports").status_code == 401
    assert client.get("/api/admin/reports", headers={"X-Admin-Token": "wrong"}).status_code == 401


def test_report_and_moderate(client, user_headers, admin_headers):
    root = _post(client, user_headers, "Spam").json()
    report = client.post(f"/api/discussions/{root['id']}/report", json={"reason": "spam"},
                         headers={"X-User-Id": "user-bob"})
    assert report.json() == {"ok": True}
    assert client.post("/api/discussions/999/report", json={}, headers=user_headers).status_code == 404

    reports = client.get("/api/admin/reports", params={"status": "pending"}, headers=admin_headers).json()
    assert reports["total"] == 1
    report_id = reports["reports"][0]["id"]

    bad = client.post(f"/api/admin/reports/{report_id}/review",
                      json={"outcome": "dismissed", "delete_node": True}, headers=admin_headers)
    assert bad.status_code == 400

    resp = client.post(f"/api/admin/reports/{report_id}/review",
                       json={"outcome": "resolved", "delete_node": True}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["node_deleted"] is True
    assert resp.json()["reviewed_by"] == "mod-1"

    thread = client.get("/api/discussions", params={"key": root["subject_key"]}).json()
    assert thread["total"] == 0
