"""Dictionary lookup and community contribution routes."""
from log import get_logger

logger = get_logger("nungdict.dictionary_routes")

from fastapi import APIRouter, Depends, HTTPException

from models import ContributionRequest
from auth import require_user
from contributions import submit_contribution
from discussion_routes import raise_http
from errors import InvalidInputError, NungDictError
from inference import build_inferred_vocabulary
from resolver import TieredResolver
from translate_routes import MAX_INPUT_LEN, check_input, get_resolver

router = APIRouter()


@router.get("/api/dictionary/lookup", tags=["Dictionary"], summary="Look up a Vietnamese word or phrase")
async def lookup_word(word: str, lang: str = "nung", resolver: TieredResolver = Depends(get_resolver)):
    check_input(word)
    try:
        dictionary = resolver.dictionary_for(lang)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))

    entry = dictionary.lookup(word)
    if entry is not None:
        return {"word": word.strip().lower(), "source": "dictionary", "variants": entry.variants, **entry.model_dump()}

    try:
        breakdown = resolver.resolve_locally(word, lang)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    if len(breakdown) == 1 and breakdown[0].note == "inferred":
        return {"source": "inferred", **breakdown[0].model_dump()}
    raise HTTPException(404, "Word not found")


@router.get("/api/dictionary/reverse", tags=["Dictionary"], summary="Look up Nùng words in Vietnamese")
async def reverse_lookup(text: str, resolver: TieredResolver = Depends(get_resolver)):
    check_input(text)
    try:
        dictionary = resolver.dictionary_for("nung")
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    return dictionary.reverse_lookup(text).model_dump()


@router.get("/api/dictionary/inferred", tags=["Dictionary"], summary="Words known only from phrases")
async def inferred_vocabulary(lang: str = "nung", resolver: TieredResolver = Depends(get_resolver)):
    try:
        dictionary = resolver.dictionary_for(lang)
    except InvalidInputError as e:
        raise HTTPException(400, str(e))
    vocabulary = build_inferred_vocabulary(dictionary)
    return {"lang": lang, "count": len(vocabulary), "words": [entry.model_dump() for entry in vocabulary]}


@router.post("/api/contributions", tags=["Contributions"], summary="Suggest a new word for review")
async def contribute(req: ContributionRequest, user_id: str = Depends(require_user)):
    if len(req.word) > MAX_INPUT_LEN:
        raise HTTPException(400, f"Input too long (max {MAX_INPUT_LEN} characters)")
    try:
        contribution = submit_contribution(
            req.word, req.translation, req.target_language, contributor_id=user_id,
            phonetic=req.phonetic, notes=req.notes, region=req.region,
        )
    except NungDictError as e:
        raise_http(e)
    return contribution.model_dump()
