"""Inference tier: guess translations for spans the dictionary has no key for.

Strategies share one interface, `try_infer(span) -> Optional[BreakdownEntry]`,
so the resolver can run any list of them in order.

PhraseAlignmentInference learns single words from the multi-word keys that
contain them. If "đi ngủ" is "pây noòn" and "buồn ngủ" is "màu noòn", then
"ngủ" lines up with "noòn" in both, so "noòn" gets two votes.
"""
from typing import Dict, List, NamedTuple, Optional, Protocol, Sequence

from dictionary import Dictionary, normalize, tokenize
from models import BreakdownEntry

MIN_INFERENCE_LENGTH = 2
SOURCE_PREVIEW_LIMIT = 3

_CONFIDENCE_RANK = {"low": 1, "medium": 2, "high": 3}


class InferenceStrategy(Protocol):
    def try_infer(self, span: str) -> Optional[BreakdownEntry]:
        ...


class _Alignment(NamedTuple):
    phrase: str
    variant: str
    script_word: str
    corroborated: bool


def _script_words(script: str) -> List[str]:
    return [w for w in script.lower().replace("/", " ").replace(",", " ").split() if w]


class PhraseAlignmentInference:
    """Position alignment between multi-word keys and same-length script variants."""

    def __init__(self, dictionary: Dictionary):
        self.dictionary = dictionary
        index: Dict[str, List[_Alignment]] = {}
        for phrase, words in dictionary.phrase_keys():
            for variant in dictionary[phrase].variants:
                script_words = variant.lower().split()
                if len(script_words) != len(words):
                    continue
                for idx, word in enumerate(words):
                    if word in words[:idx]:
                        continue
                    index.setdefault(word, []).append(_Alignment(
                        phrase=phrase,
                        variant=variant,
                        script_word=script_words[idx],
                        corroborated=self._corroborated(words, script_words, idx),
                    ))
                # one vote per phrase: first variant with a matching word count
                break
        self._index = index

    def _corroborated(self, words: Sequence[str], script_words: Sequence[str], skip: int) -> bool:
        """True if another aligned word agrees with its own dictionary entry."""
        for i, word in enumerate(words):
            if i == skip:
                continue
            entry = self.dictionary.get(word)
            if entry is not None and script_words[i] in _script_words(entry.script):
                return True
        return False

    def candidates(self, word: str) -> List[_Alignment]:
        return list(self._index.get(word, ()))

    def try_infer(self, span: str) -> Optional[BreakdownEntry]:
        span = normalize(span)
        if len(span) < MIN_INFERENCE_LENGTH or " " in span:
            return None
        alignments = self._index.get(span)
        if not alignments:
            return None

        votes: Dict[str, List[_Alignment]] = {}
        for alignment in alignments:
            votes.setdefault(alignment.script_word, []).append(alignment)
        best = max(votes.values(), key=len)

        if len(best) >= 3:
            confidence = "high"
        elif len(best) >= 2 or any(a.corroborated for a in best):
            confidence = "medium"
        else:
            confidence = "low"

        sources = "; ".join(f'"{a.phrase}" → "{a.variant}"' for a in best[:SOURCE_PREVIEW_LIMIT])
        return BreakdownEntry(
            word=span,
            translation=best[0].script_word,
            note="inferred",
            confidence=confidence,
            detail=f"inferred from {len(best)} phrase(s): {sources}",
        )


class FragmentCompositionInference:
    """Translate a multi-word span word by word, composing the fragments.

    Each word must resolve through a direct entry or one of the fragment
    strategies; a single unresolved word fails the whole span.
    """

    def __init__(self, dictionary: Dictionary, fragment_strategies: Sequence[InferenceStrategy]):
        self.dictionary = dictionary
        self.fragment_strategies = list(fragment_strategies)

    def _fragment(self, word: str) -> Optional[BreakdownEntry]:
        entry = self.dictionary.get(word)
        if entry is not None:
            return BreakdownEntry(word=word, translation=entry.primary_script, note="direct", confidence="high")
        for strategy in self.fragment_strategies:
            inferred = strategy.try_infer(word)
            if inferred is not None:
                return inferred
        return None

    def try_infer(self, span: str) -> Optional[BreakdownEntry]:
        span = normalize(span)
        words = tokenize(span)
        if len(words) < 2 or len(span) < MIN_INFERENCE_LENGTH:
            return None

        fragments = []
        for word in words:
            fragment = self._fragment(word)
            if fragment is None:
                return None
            fragments.append(fragment)

        confidence = min((f.confidence or "low" for f in fragments), key=_CONFIDENCE_RANK.__getitem__)
        return BreakdownEntry(
            word=" ".join(words),
            translation=" ".join(f.translation for f in fragments),
            note="inferred",
            confidence=confidence,
            detail="composed from " + " + ".join(f"{f.word} → {f.translation}" for f in fragments),
        )


def default_strategies(dictionary: Dictionary) -> List[InferenceStrategy]:
    alignment = PhraseAlignmentInference(dictionary)
    return [FragmentCompositionInference(dictionary, [alignment]), alignment]


def build_inferred_vocabulary(dictionary: Dictionary) -> List[BreakdownEntry]:
    """Words that only appear inside phrases, with a usable inference."""
    alignment = PhraseAlignmentInference(dictionary)
    seen = set()
    vocabulary = []
    for _phrase, words in dictionary.phrase_keys():
        for word in words:
            if word in seen or word in dictionary or len(word) < MIN_INFERENCE_LENGTH:
                continue
            seen.add(word)
            inferred = alignment.try_infer(word)
            if inferred is not None and inferred.confidence != "low":
                vocabulary.append(inferred)
    vocabulary.sort(key=lambda e: e.word)
    return vocabulary
