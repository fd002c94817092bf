"""Shared fixtures: temporary database, fixture dictionaries, fake remotes."""
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

import auth
import cache
import storage
from dictionary import build_dictionary
from resolver import TieredResolver
from routes import router

NUNG_FIXTURE = {
    "tôi": {"script": "khỏi", "phonetic": "khɔi"},
    "đi ngủ": {"script": "pay nòn", "phonetic": "pây nɔn"},
    "ngủ": {"script": "nòn", "phonetic": "nɔn"},
    "đi": {"script": "pây", "phonetic": "pəj"},
    "đi chợ": {"script": "pjây háng"},
    "con": {"script": "lục / Lộc", "notes": "con cái, không dùng cho động vật"},
    "con lợn": {"script": "tua mu / Tu mu", "phonetic": "tua mu"},
    "lợn": {"script": "mu"},
    "con trâu": {"script": "tua vài / Tu vài"},
    "to": {"script": "cải"},
    "hơn": {"script": "quá", "notes": "So sánh hơn"},
    "ăn cơm": {"script": "kin khẩu"},
    "nấu cơm": {"script": "kươm khẩu / cươm khẩu"},
    "uống nước": {"script": "kin nặm"},
    "ăn": {"script": "kin"},
}

CENTRAL_FIXTURE = {
    "đâu": {"script": "mô"},
    "vậy": {"script": "rứa"},
    "đi": {"script": "đi"},
    "anh ấy": {"script": "anh nớ"},
}


class FakeRemote:
    """Async stand-in for the remote tier that records every call."""

    def __init__(self, translations=None, error=None):
        self.translations = dict(translations or {})
        self.error = error
        self.calls = []

    async def __call__(self, words, target_lang):
        self.calls.append((list(words), target_lang))
        if self.error is not None:
            raise self.error
        return {w: self.translations[w] for w in words if w in self.translations}


@pytest.fixture()
def db(tmp_path, monkeypatch):
    monkeypatch.setattr(storage, "DB_PATH", tmp_path / "nungdict-test.db")
    storage.init_db()
    return storage.DB_PATH


@pytest.fixture()
def nung_dictionary():
    return build_dictionary(NUNG_FIXTURE, "nung")


@pytest.fixture()
def central_dictionary():
    return build_dictionary(CENTRAL_FIXTURE, "central")


@pytest.fixture()
def dictionaries(nung_dictionary, central_dictionary):
    return {"nung": nung_dictionary, "central": central_dictionary}


@pytest.fixture()
def make_remote():
    return FakeRemote


@pytest.fixture()
def resolver(dictionaries):
    return TieredResolver(dictionaries)


@pytest.fixture()
def remote():
    return FakeRemote({"muốn": "ắt"})


@pytest.fixture()
def app(db, dictionaries, remote):
    app = FastAPI()
    app.include_router(router)
    app.state.base_dictionaries = dictionaries
    app.state.resolver = TieredResolver(dictionaries, remote=remote)
    return app


@pytest.fixture()
def client(app, tmp_path, monkeypatch):
    monkeypatch.setattr(cache, "CACHE_FILE", tmp_path / "translation_cache.json")
    cache.cache_clear()
    auth._rate_buckets.clear()
    with TestClient(app) as test_client:
        yield test_client
    cache.cache_clear()


@pytest.fixture()
def user_headers():
    return {"X-User-Id": "user-alice"}


@pytest.fixture()
def admin_headers(monkeypatch):
    monkeypatch.setattr(auth, "ADMIN_TOKEN", "test-admin-token")
    return {"X-Admin-Token": "test-admin-token", "X-User-Id": "mod-1"}
