"""nungdict: community dictionary and translation service for Nùng and
Central Vietnamese.

Run with: uvicorn backend:app --port 8848
"""
import time
from collections import deque
from contextlib import asynccontextmanager
from typing import Dict, Mapping

from log import get_logger

logger = get_logger("nungdict.backend")

from fastapi import FastAPI, Request

from cache import load_cache, save_cache
from contributions import approved_entries
from dictionary import Dictionary, load_dictionaries
from llm import translate_missing_words
from resolver import TieredResolver
from routes import router
from storage import init_db

LATENCY_WINDOW = 500
_latencies: deque = deque(maxlen=LATENCY_WINDOW)


def build_resolver(base_dictionaries: Mapping) -> TieredResolver:
    """Overlay approved contributions on the bundled dictionaries."""
    dictionaries: Dict[str, Dictionary] = {}
    for lang, dictionary in base_dictionaries.items():
        extra = approved_entries(lang)
        dictionaries[lang] = dictionary.with_entries(extra) if extra else dictionary
    return TieredResolver(dictionaries, remote=translate_missing_words)


def refresh_resolver(app: FastAPI):
    app.state.resolver = build_resolver(app.state.base_dictionaries)
    logger.info("Resolver rebuilt", extra={"component": "dictionary",
                                          "count": sum(len(d) for d in app.state.resolver.dictionaries.values())})


def get_latency_stats() -> dict:
    if not _latencies:
        return {"count": 0, "avg_ms": None, "p95_ms": None}
    ordered = sorted(_latencies)
    p95 = ordered[min(len(ordered) - 1, int(len(ordered) * 0.95))]
    return {
        "count": len(ordered),
        "avg_ms": round(sum(ordered) / len(ordered), 1),
        "p95_ms": round(p95, 1),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    load_cache()
    app.state.base_dictionaries = load_dictionaries()
    refresh_resolver(app)
    yield
    save_cache()


app = FastAPI(title="nungdict", lifespan=lifespan)
app.include_router(router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = (time.perf_counter() - started) * 1000
    if request.url.path.startswith("/api/"):
        _latencies.append(elapsed)
        logger.info("request", extra={
            "endpoint": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(elapsed, 1),
        })
    return response
