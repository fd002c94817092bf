"""API route aggregation for nungdict."""
from log import get_logger

logger = get_logger("nungdict.routes")

from fastapi import APIRouter, Request

from models import SUPPORTED_LANGUAGES
from cache import cache_stats
from llm import LLM_URL, LLM_MODEL, check_llm_connectivity

from translate_routes import router as translate_router
from dictionary_routes import router as dictionary_router
from discussion_routes import router as discussion_router
from admin_routes import router as admin_router

router = APIRouter()
router.include_router(translate_router)
router.include_router(dictionary_router)
router.include_router(discussion_router)
router.include_router(admin_router)


@router.get("/api/languages", tags=["Reference"], summary="List supported languages")
async def get_languages(request: Request):
    resolver = getattr(request.app.state, "resolver", None)
    resolvable = resolver.languages if resolver is not None else []
    return [
        {"code": code, "name": name, "has_dictionary": code in resolvable}
        for code, name in SUPPORTED_LANGUAGES.items()
    ]


@router.get("/api/health", tags=["System"], summary="Health check with stats")
async def health_check(request: Request):
    llm_ok = await check_llm_connectivity()
    resolver = getattr(request.app.state, "resolver", None)
    dictionaries = {lang: len(d) for lang, d in resolver.dictionaries.items()} if resolver is not None else {}

    from backend import get_latency_stats
    return {
        "status": "ok" if llm_ok and dictionaries else "degraded",
        "llm": {"reachable": llm_ok, "url": LLM_URL, "model": LLM_MODEL},
        "dictionaries": dictionaries,
        "cache": cache_stats(),
        "latency": get_latency_stats(),
    }
