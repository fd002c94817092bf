"""Tiered translation resolver.

Resolution order for every request:
  1. direct dictionary hits, scanning left to right, longest key wins
  2. inference over the runs of words the dictionary missed
  3. one batched remote call for whatever is still unresolved

A failing remote call never fails the request: its spans come back as
"unknown" with the source word in brackets. A remote signals failure only
by raising RemoteResolutionError; translating transport errors and bad
reply shapes into it is the remote's job (see llm.translate_missing_words).
The resolver keeps no state between calls and does not cache.
"""
import asyncio
import time
from collections.abc import Mapping
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple

from dictionary import Dictionary, normalize, tokenize
from errors import InvalidInputError, RemoteResolutionError
from inference import MIN_INFERENCE_LENGTH, InferenceStrategy, default_strategies
from log import get_logger
from models import BreakdownEntry, TieredTranslationResult, TranslationPreview, TranslationStats

logger = get_logger("nungdict.resolver")

# (words, target_lang) -> {word: translation}. Failures must surface as
# RemoteResolutionError; any other exception is a bug and propagates.
RemoteTranslator = Callable[[List[str], str], Awaitable[Mapping]]

REMOTE_TIMEOUT = 30.0


class Span(NamedTuple):
    position: int
    words: Tuple[str, ...]

    @property
    def text(self) -> str:
        return " ".join(self.words)


def _unknown(span: Span) -> BreakdownEntry:
    return BreakdownEntry(word=span.text, translation=f"[{span.text}]", note="unknown", position=span.position)


class TieredResolver:
    def __init__(
        self,
        dictionaries: Mapping,
        remote: Optional[RemoteTranslator] = None,
        inference: Optional[Mapping] = None,
        remote_timeout: float = REMOTE_TIMEOUT,
    ):
        self.dictionaries: Dict[str, Dictionary] = dict(dictionaries)
        self.remote = remote
        self.remote_timeout = remote_timeout
        inference = inference or {}
        self.strategies: Dict[str, List[InferenceStrategy]] = {
            lang: list(inference[lang]) if lang in inference else default_strategies(dictionary)
            for lang, dictionary in self.dictionaries.items()
        }

    @property
    def languages(self) -> List[str]:
        return list(self.dictionaries)

    def dictionary_for(self, target_lang: str) -> Dictionary:
        dictionary = self.dictionaries.get(target_lang)
        if dictionary is None:
            raise InvalidInputError(f"Unsupported target language: {target_lang!r}")
        return dictionary

    def _tokens(self, text: str) -> List[str]:
        if not text or not text.strip():
            raise InvalidInputError("Text to translate is empty")
        tokens = tokenize(normalize(text))
        if not tokens:
            raise InvalidInputError("Text contains no words")
        return tokens

    # --- Tier 1: direct lookup ---

    def _segment(self, tokens: Sequence[str], dictionary: Dictionary) -> Tuple[List[BreakdownEntry], List[Span]]:
        """Greedy longest-match scan. Returns direct hits and unmatched runs."""
        hits: List[BreakdownEntry] = []
        runs: List[Span] = []
        run_start: Optional[int] = None
        i = 0
        while i < len(tokens):
            match = dictionary.longest_match(tokens, i)
            if match is None:
                if run_start is None:
                    run_start = i
                i += 1
                continue
            if run_start is not None:
                runs.append(Span(run_start, tuple(tokens[run_start:i])))
                run_start = None
            key, size = match
            entry = dictionary[key]
            hits.append(BreakdownEntry(
                word=key,
                translation=entry.primary_script,
                note="direct",
                position=i,
                phonetic=entry.phonetic or None,
                detail=entry.notes,
            ))
            i += size
        if run_start is not None:
            runs.append(Span(run_start, tuple(tokens[run_start:])))
        return hits, runs

    # --- Tier 2: inference ---

    def _try_strategies(self, span: Span, strategies: Sequence[InferenceStrategy]) -> Optional[BreakdownEntry]:
        if len(span.text) < MIN_INFERENCE_LENGTH:
            return None
        for strategy in strategies:
            inferred = strategy.try_infer(span.text)
            if inferred is not None:
                return inferred.model_copy(update={"position": span.position, "note": "inferred"})
        return None

    def _infer(self, run: Span, strategies: Sequence[InferenceStrategy]) -> Tuple[List[BreakdownEntry], List[Span]]:
        whole = self._try_strategies(run, strategies)
        if whole is not None:
            return [whole], []
        if len(run.words) == 1:
            return [], [run]

        inferred: List[BreakdownEntry] = []
        unresolved: List[Span] = []
        for offset, word in enumerate(run.words):
            span = Span(run.position + offset, (word,))
            entry = self._try_strategies(span, strategies)
            if entry is None:
                unresolved.append(span)
            else:
                inferred.append(entry)
        return inferred, unresolved

    def _resolve_local(self, tokens: Sequence[str], target_lang: str) -> Tuple[List[BreakdownEntry], List[Span]]:
        dictionary = self.dictionary_for(target_lang)
        strategies = self.strategies[target_lang]
        breakdown, runs = self._segment(tokens, dictionary)
        unresolved: List[Span] = []
        for run in runs:
            inferred, leftover = self._infer(run, strategies)
            breakdown.extend(inferred)
            unresolved.extend(leftover)
        return breakdown, unresolved

    # --- Tier 3: remote fallback ---

    async def _call_remote(self, words: List[str], target_lang: str) -> Dict[str, str]:
        if self.remote is None:
            return {}
        unique = list(dict.fromkeys(words))
        try:
            raw = await asyncio.wait_for(self.remote(unique, target_lang), timeout=self.remote_timeout)
        except (RemoteResolutionError, asyncio.TimeoutError) as e:
            logger.warning(
                "Remote resolution failed, marking spans unknown",
                extra={"component": "resolver", "lang": target_lang, "count": len(unique), "detail": str(e) or type(e).__name__},
            )
            return {}
        if not isinstance(raw, Mapping):
            logger.warning("Remote returned a non-mapping result", extra={"component": "resolver", "lang": target_lang})
            return {}
        return {
            normalize(str(word)): translation.strip()
            for word, translation in raw.items()
            if isinstance(translation, str) and translation.strip()
        }

    # --- Public API ---

    async def resolve(self, text: str, target_lang: str) -> TieredTranslationResult:
        started = time.perf_counter()
        self.dictionary_for(target_lang)
        tokens = self._tokens(text)

        breakdown, unresolved = self._resolve_local(tokens, target_lang)
        if unresolved:
            translations = await self._call_remote([span.text for span in unresolved], target_lang)
            for span in unresolved:
                translated = translations.get(span.text)
                if translated:
                    breakdown.append(BreakdownEntry(
                        word=span.text, translation=translated, note="api", position=span.position,
                    ))
                else:
                    breakdown.append(_unknown(span))

        breakdown.sort(key=lambda entry: entry.position)
        stats = TranslationStats(
            total_spans=len(breakdown),
            local_hits=sum(1 for e in breakdown if e.note == "direct"),
            inferred=sum(1 for e in breakdown if e.note == "inferred"),
            api_calls=sum(1 for e in breakdown if e.note == "api"),
            unknown=sum(1 for e in breakdown if e.note == "unknown"),
        )
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "Resolved text",
            extra={"component": "resolver", "lang": target_lang, "spans": stats.total_spans,
                   "count": stats.api_calls, "duration_ms": elapsed_ms},
        )
        return TieredTranslationResult(
            original=text,
            target_language=target_lang,
            translation=" ".join(entry.translation for entry in breakdown),
            breakdown=breakdown,
            stats=stats,
            api_called=stats.api_calls > 0,
            time_taken_ms=elapsed_ms,
        )

    def resolve_locally(self, text: str, target_lang: str) -> List[BreakdownEntry]:
        """Tiers 1 and 2 only. Unresolved spans are returned as unknown."""
        self.dictionary_for(target_lang)
        breakdown, unresolved = self._resolve_local(self._tokens(text), target_lang)
        breakdown.extend(_unknown(span) for span in unresolved)
        breakdown.sort(key=lambda entry: entry.position)
        return breakdown

    def preview(self, text: str, target_lang: str) -> TranslationPreview:
        breakdown = self.resolve_locally(text, target_lang)
        resolved = [e for e in breakdown if e.note != "unknown"]
        return TranslationPreview(
            phrases=[e for e in breakdown if e.note == "direct" and " " in e.word],
            single_words=[e for e in breakdown if e.note == "direct" and " " not in e.word],
            inferred=[e for e in breakdown if e.note == "inferred"],
            needs_lookup=[e.word for e in breakdown if e.note == "unknown"],
            coverage=round(100 * len(resolved) / len(breakdown)) if breakdown else 0,
        )
