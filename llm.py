"""LLM access (OpenAI-compatible chat completions), response parsing, and the
prompt-level operations built on it: missing-word batches for the resolver,
full translations, spell check, and chat.
"""
import json
import os
import re as _re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from dictionary import normalize
from errors import RemoteResolutionError
from log import get_logger
from models import MissingWordsPayload, TranslationPayload
from prompts import (
    SYSTEM_PROMPT_CHAT, SYSTEM_PROMPT_TRANSLATION, UNKNOWN_WORD_MARKER,
    build_missing_words_prompt, build_spell_check_prompt, build_translation_prompt,
    get_language_description, get_translation_rules,
)

logger = get_logger("nungdict.llm")

# --- Config ---
LLM_URL = os.environ.get("NUNGDICT_LLM_URL", "https://ai.megallm.io/v1").rstrip("/")
LLM_API_KEY = os.environ.get("NUNGDICT_LLM_API_KEY", "")
LLM_MODEL = os.environ.get("NUNGDICT_LLM_MODEL", "deepseek-ai/deepseek-v3.1")
LLM_TIMEOUT = float(os.environ.get("NUNGDICT_LLM_TIMEOUT", "60"))

CHAT_FALLBACK_REPLY = "Xin lỗi, tôi đang gặp sự cố kết nối. Vui lòng thử lại sau."

ChatFn = Callable[..., Awaitable[Optional[str]]]
PayloadT = TypeVar("PayloadT", bound=BaseModel)

_FENCE_START_RE = _re.compile(r"^```(?:json)?\s*", _re.IGNORECASE)
_FENCE_END_RE = _re.compile(r"\s*```$")


async def llm_chat(messages: list, temperature: float = 0.3, max_tokens: int = 2048,
                   timeout: Optional[float] = None) -> Optional[str]:
    """Call the chat completions API and return the content string.

    Returns None on a non-200 response or a body that is not a chat
    completion. Transport errors propagate as httpx exceptions.
    """
    headers = {"Content-Type": "application/json"}
    if LLM_API_KEY:
        headers["Authorization"] = f"Bearer {LLM_API_KEY}"
    async with httpx.AsyncClient(timeout=timeout or LLM_TIMEOUT) as client:
        resp = await client.post(
            f"{LLM_URL}/chat/completions",
            headers=headers,
            json={
                "model": LLM_MODEL,
                "messages": messages,
                "temperature": temperature,
                "max_tokens": max_tokens,
            },
        )
    if resp.status_code != 200:
        logger.warning("LLM API error", extra={"component": "llm", "status_code": resp.status_code})
        return None
    try:
        data = resp.json()
    except ValueError:
        logger.warning("LLM API returned non-JSON body", extra={"component": "llm"})
        return None
    choices = data.get("choices") if isinstance(data, dict) else None
    if not isinstance(choices, list):
        logger.warning("LLM API returned an unexpected body", extra={"component": "llm"})
        return None
    if not choices:
        return ""
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    content = message.get("content") if isinstance(message, dict) else None
    if content is None:
        return ""
    if not isinstance(content, str):
        logger.warning("LLM API returned non-text content", extra={"component": "llm"})
        return None
    return content


async def check_llm_connectivity() -> bool:
    headers = {"Authorization": f"Bearer {LLM_API_KEY}"} if LLM_API_KEY else {}
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            resp = await client.get(f"{LLM_URL}/models", headers=headers)
            return resp.status_code == 200
    except httpx.HTTPError:
        logger.warning("LLM API not reachable", extra={"component": "llm"})
        return False


# --- Parsing ---

def clean_json_response(text: str) -> str:
    """Strip markdown code fences around a JSON reply."""
    cleaned = _FENCE_START_RE.sub("", (text or "").strip())
    return _FENCE_END_RE.sub("", cleaned).strip()


def parse_json_object(text: str) -> Optional[dict]:
    cleaned = clean_json_response(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        match = _re.search(r'\{.*\}', cleaned, _re.DOTALL)
        if not match:
            return None
        try:
            data = json.loads(match.group())
        except json.JSONDecodeError:
            return None
    return data if isinstance(data, dict) else None


def parse_payload(text: str, model: Type[PayloadT]) -> PayloadT:
    """Validate an LLM reply into a typed envelope or raise RemoteResolutionError."""
    data = parse_json_object(text)
    if data is None:
        raise RemoteResolutionError("LLM reply did not contain a JSON object")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise RemoteResolutionError(f"LLM reply has an unexpected shape: {e.error_count()} error(s)") from e


async def _complete(chat: Optional[ChatFn], messages: List[Dict[str, Any]], **kwargs) -> str:
    chat = chat or llm_chat
    try:
        content = await chat(messages, **kwargs)
    except httpx.HTTPError as e:
        raise RemoteResolutionError(f"LLM request failed: {type(e).__name__}") from e
    if content is None:
        raise RemoteResolutionError("LLM API error")
    if not isinstance(content, str):
        raise RemoteResolutionError(f"LLM reply is {type(content).__name__}, not text")
    return content


# --- Operations ---

async def translate_missing_words(words: Sequence[str], target_lang: str,
                                  chat: Optional[ChatFn] = None) -> Dict[str, str]:
    """Translate a batch of single words in one request.

    Used as the resolver's remote tier. Words the model marks as unknown
    are left out of the result.
    """
    if not words:
        return {}
    prompt = build_missing_words_prompt(words, get_language_description(target_lang))
    content = await _complete(chat, [
        {"role": "system", "content": SYSTEM_PROMPT_TRANSLATION},
        {"role": "user", "content": prompt},
    ], temperature=0.3)
    payload = parse_payload(content, MissingWordsPayload)

    result = {}
    for word, translation in payload.translations.items():
        translation = (translation or "").strip()
        if translation and translation != UNKNOWN_WORD_MARKER:
            result[normalize(word)] = translation
    logger.info("Translated missing words", extra={"component": "llm", "lang": target_lang,
                                                   "count": len(result), "detail": f"{len(result)}/{len(words)}"})
    return result


async def translate_text(text: str, target_lang: str, source_lang: str, resolver,
                         chat: Optional[ChatFn] = None) -> TranslationPayload:
    target_desc, rules = get_translation_rules(text, source_lang, target_lang, resolver)
    prompt = build_translation_prompt(text, get_language_description(source_lang), target_desc, rules)
    content = await _complete(chat, [
        {"role": "system", "content": SYSTEM_PROMPT_TRANSLATION},
        {"role": "user", "content": prompt},
    ], temperature=0.3)
    return parse_payload(content, TranslationPayload)


async def check_spelling(text: str, chat: Optional[ChatFn] = None) -> Optional[str]:
    """Return a corrected sentence, or None when nothing needs fixing."""
    content = await _complete(chat, [
        {"role": "user", "content": build_spell_check_prompt(text)},
    ], temperature=0.1, max_tokens=512)
    suggestion = content.strip().strip('"').strip()
    if not suggestion or suggestion.upper() == "NULL" or suggestion == text.strip():
        return None
    return suggestion


async def send_chat_message(history: Sequence[Dict[str, str]], message: str,
                            chat: Optional[ChatFn] = None) -> str:
    messages = [{"role": "system", "content": SYSTEM_PROMPT_CHAT}]
    messages.extend({"role": turn["role"], "content": turn["content"]} for turn in history)
    messages.append({"role": "user", "content": message})
    try:
        content = await _complete(chat, messages, temperature=0.8)
    except RemoteResolutionError:
        logger.warning("Chat reply unavailable", extra={"component": "llm"})
        return CHAT_FALLBACK_REPLY
    return content.strip() or CHAT_FALLBACK_REPLY
