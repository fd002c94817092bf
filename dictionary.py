"""Local dictionary snapshots.

A Dictionary is loaded once at startup and handed to the resolver; nothing
mutates it afterwards. Approved community contributions are applied by
building a new snapshot with `with_entries`, never by editing one in place.
"""
import json
import os
import re as _re
from collections.abc import Mapping
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from errors import DictionaryConfigError
from log import get_logger
from models import RESOLVABLE_LANGUAGES, DictionaryEntry, ReverseLookupResult, ReverseMatch

logger = get_logger("nungdict.dictionary")

DATA_DIR = Path(os.environ.get("NUNGDICT_DATA_DIR", Path(__file__).parent / "data"))

_WORD_RE = _re.compile(r"\w+")
_VARIANT_SPLIT_RE = _re.compile(r"[/,]")
PARTIAL_MATCH_LIMIT = 3


def normalize(text: str) -> str:
    return " ".join(text.strip().lower().split())


def tokenize(text: str) -> List[str]:
    return _WORD_RE.findall(text.lower())


def primary_script(script: str) -> str:
    """First `/`-separated variant of a script."""
    return script.split("/")[0].strip()


class Dictionary(Mapping):
    """Read-only mapping of normalised source keys to entries.

    Keys made only of word characters and single spaces are also indexed as
    token tuples so the resolver can do longest-match scanning. Keys with
    punctuation (e.g. "dượng (chồng cô)") stay reachable through plain
    lookups only.
    """

    def __init__(self, entries: Mapping, language: str = "nung"):
        self.language = language
        self._entries = MappingProxyType(dict(entries))

        phrases: Dict[Tuple[str, ...], str] = {}
        for key in self._entries:
            tokens = tuple(tokenize(key))
            if tokens and " ".join(tokens) == key:
                phrases[tokens] = key
        self._phrases = MappingProxyType(phrases)
        self.max_phrase_words = max((len(t) for t in phrases), default=0)

        reverse: Dict[str, List[Tuple[str, DictionaryEntry]]] = {}
        for key, entry in self._entries.items():
            for variant in _VARIANT_SPLIT_RE.split(entry.script):
                variant = " ".join(tokenize(variant))
                if variant:
                    reverse.setdefault(variant, []).append((key, entry))
        self._reverse = MappingProxyType(reverse)
        self._reverse_max_words = max((len(v.split()) for v in reverse), default=0)

    def __getitem__(self, key: str) -> DictionaryEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"<Dictionary {self.language} entries={len(self)}>"

    def lookup(self, text: str) -> Optional[DictionaryEntry]:
        return self._entries.get(normalize(text))

    def longest_match(self, tokens: Sequence[str], start: int) -> Optional[Tuple[str, int]]:
        """Return (key, token_count) for the longest key starting at `start`."""
        longest = min(self.max_phrase_words, len(tokens) - start)
        for size in range(longest, 0, -1):
            key = self._phrases.get(tuple(tokens[start:start + size]))
            if key is not None:
                return key, size
        return None

    def phrase_keys(self) -> Iterator[Tuple[str, Tuple[str, ...]]]:
        """Yield (key, tokens) for every multi-word key."""
        for tokens, key in self._phrases.items():
            if len(tokens) > 1:
                yield key, tokens

    def with_entries(self, extra: Mapping) -> "Dictionary":
        """New snapshot with `extra` entries added, held to the load-time rules."""
        merged = dict(self._entries)
        for raw_key, entry in extra.items():
            key = normalize(str(raw_key))
            if not key:
                raise DictionaryConfigError(f"{self.language} overlay has an empty key")
            if not isinstance(entry, DictionaryEntry) or not entry.primary_script:
                raise DictionaryConfigError(f"Overlay entry {raw_key!r} has an empty script")
            merged[key] = entry
        return Dictionary(merged, self.language)

    def reverse_lookup(self, text: str) -> ReverseLookupResult:
        """Nùng -> Vietnamese lookup over script variants.

        Multi-word variants are matched first (longest wins), then single
        words exactly, then words that appear inside a longer variant.
        """
        tokens = tokenize(text)
        result = ReverseLookupResult()
        i = 0
        while i < len(tokens):
            longest = min(self._reverse_max_words, len(tokens) - i)
            for size in range(longest, 0, -1):
                phrase = " ".join(tokens[i:i + size])
                hits = self._reverse.get(phrase)
                if hits:
                    result.direct.append(_reverse_match(phrase, hits))
                    i += size
                    break
            else:
                word = tokens[i]
                hits = []
                if len(word) > 1:
                    for variant, pairs in self._reverse.items():
                        if word in variant.split():
                            hits.extend(pairs)
                        if len(hits) >= PARTIAL_MATCH_LIMIT:
                            break
                if hits:
                    result.partial.append(_reverse_match(word, hits[:PARTIAL_MATCH_LIMIT]))
                else:
                    result.not_found.append(word)
                i += 1
        return result


def _reverse_match(nung_word: str, hits: List[Tuple[str, DictionaryEntry]]) -> ReverseMatch:
    meanings: List[str] = []
    for key, _entry in hits:
        if key not in meanings:
            meanings.append(key)
    return ReverseMatch(nung_word=nung_word, vietnamese=meanings, notes=hits[0][1].notes)


def build_dictionary(raw: Any, language: str) -> Dictionary:
    """Validate raw `{key: {script, phonetic?, notes?}}` data into a snapshot."""
    if not isinstance(raw, dict):
        raise DictionaryConfigError(f"{language} dictionary must be a JSON object")
    entries: Dict[str, DictionaryEntry] = {}
    for raw_key, value in raw.items():
        key = normalize(str(raw_key))
        if not key:
            raise DictionaryConfigError(f"{language} dictionary has an empty key")
        if not isinstance(value, dict):
            raise DictionaryConfigError(f"Entry {raw_key!r} must be an object")
        script = str(value.get("script") or "").strip()
        if not script or not primary_script(script):
            raise DictionaryConfigError(f"Entry {raw_key!r} has an empty script")
        if key in entries:
            raise DictionaryConfigError(f"Duplicate dictionary key {key!r}")
        entries[key] = DictionaryEntry(
            script=script,
            phonetic=str(value.get("phonetic") or "").strip(),
            notes=value.get("notes") or None,
        )
    return Dictionary(entries, language)


def load_dictionary(path: Path, language: str) -> Dictionary:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise DictionaryConfigError(f"Cannot read {language} dictionary at {path}: {e}") from e
    dictionary = build_dictionary(raw, language)
    logger.info("Dictionary loaded", extra={"component": "dictionary", "lang": language, "count": len(dictionary)})
    return dictionary


def load_dictionaries(data_dir: Optional[Path] = None) -> Dict[str, Dictionary]:
    data_dir = Path(data_dir or DATA_DIR)
    return {
        lang: load_dictionary(data_dir / f"{lang}_dictionary.json", lang)
        for lang in RESOLVABLE_LANGUAGES
    }
