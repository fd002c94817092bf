"""Translation API route handlers: tiered resolution, full LLM translation,
spell check, and chat."""
from log import get_logger

logger = get_logger("nungdict.translate_routes")

from fastapi import APIRouter, Depends, HTTPException, Request

from models import (
    SUPPORTED_LANGUAGES,
    ResolveRequest, TranslateRequest, SpellCheckRequest, ChatRequest,
)
from auth import enforce_rate_limit
from cache import cache_key, cache_get, cache_put
from contributions import save_api_discovered_words
from errors import InvalidInputError, RemoteResolutionError, StorageError
from llm import translate_text, check_spelling, send_chat_message
from resolver import TieredResolver

router = APIRouter()

MAX_INPUT_LEN = 500


def get_resolver(request: Request) -> TieredResolver:
    resolver = getattr(request.app.state, "resolver", None)
    if resolver is None:
        raise HTTPException(503, "Dictionary not loaded")
    return resolver


def check_input(text: str):
    if not text or not text.strip():
        raise HTTPException(400, "Text cannot be empty")
    if len(text) > MAX_INPUT_LEN:
        raise HTTPException(400, f"Input too long (max {MAX_INPUT_LEN} characters)")


@router.post("/api/resolve", tags=["Translation"], summary="Resolve text via dictionary, inference, then LLM")
async def resolve_text(request: Request, req: ResolveRequest, resolver: TieredResolver = Depends(get_resolver)):
    enforce_rate_limit(request)
    check_input(req.text)
    try:
        result = await resolver.resolve(req.text, req.target_language)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))

    if req.save_discoveries and result.api_called:
        discovered = {entry.word: entry.translation for entry in result.breakdown if entry.note == "api"}
        try:
            save_api_discovered_words(discovered, req.target_language)
        except StorageError:
            # best effort: the translation is already done
            logger.warning("Could not queue discovered words", exc_info=True,
                           extra={"component": "contributions", "count": len(discovered)})
    return result.model_dump()


@router.post("/api/preview", tags=["Translation"], summary="Show how much of a text the local dictionary covers")
async def preview_text(req: ResolveRequest, resolver: TieredResolver = Depends(get_resolver)):
    check_input(req.text)
    try:
        return resolver.preview(req.text, req.target_language).model_dump()
    except InvalidInputError as e:
        raise HTTPException(400, str(e))


@router.post("/api/translate", tags=["Translation"], summary="Full LLM translation with dictionary-grounded rules")
async def translate(request: Request, req: TranslateRequest, resolver: TieredResolver = Depends(get_resolver)):
    enforce_rate_limit(request)
    check_input(req.text)
    if req.target_language not in SUPPORTED_LANGUAGES or req.source_language not in SUPPORTED_LANGUAGES:
        raise HTTPException(400, "Unsupported language")
    if req.target_language == req.source_language:
        raise HTTPException(400, "Source and target language must differ")

    key = cache_key(req.text, req.target_language, req.source_language)
    cached = cache_get(key)
    if cached is not None:
        logger.info("translate cache hit", extra={"component": "cache", "lang": req.target_language})
        return cached

    try:
        payload = await translate_text(req.text, req.target_language, req.source_language, resolver)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    except RemoteResolutionError as e:
        logger.warning("Full translation failed", extra={"component": "llm", "detail": str(e)})
        raise HTTPException(502, "LLM API error")

    result = {
        "original": req.text,
        "source_language": req.source_language,
        "target_language": req.target_language,
        **payload.model_dump(),
    }
    cache_put(key, result)
    return result


@router.post("/api/spell-check", tags=["Translation"], summary="Suggest a spelling correction")
async def spell_check(request: Request, req: SpellCheckRequest):
    enforce_rate_limit(request)
    check_input(req.text)
    try:
        suggestion = await check_spelling(req.text)
    except RemoteResolutionError:
        raise HTTPException(502, "LLM API error")
    return {"suggestion": suggestion}


@router.post("/api/chat", tags=["Chat"], summary="Chat with the culture assistant")
async def chat(request: Request, req: ChatRequest):
    enforce_rate_limit(request)
    check_input(req.message)
    history = [turn.model_dump() for turn in req.history[-20:]]
    reply = await send_chat_message(history, req.message)
    return {"reply": reply}
