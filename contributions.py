"""Community vocabulary contributions.

Approved contributions overlay the bundled dictionaries whenever the
resolver is built. Words first translated by the remote tier are stored here
as pending so a reviewer can promote them.
"""
import sqlite3
import time
from typing import Dict, List, Mapping, Optional

from dictionary import normalize, primary_script
from errors import ContributionNotFoundError, InvalidInputError
from log import get_logger
from models import CONTRIBUTION_STATUSES, RESOLVABLE_LANGUAGES, Contribution, DictionaryEntry
from storage import transaction

logger = get_logger("nungdict.contributions")

API_DISCOVERY_REGION = "API Discovery"
MAX_FIELD_LEN = 500


def _row_to_contribution(row: sqlite3.Row) -> Contribution:
    return Contribution(**{key: row[key] for key in row.keys()})


def _require(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InvalidInputError(f"{field} is required")
    if len(text) > MAX_FIELD_LEN:
        raise InvalidInputError(f"{field} too long (max {MAX_FIELD_LEN} characters)")
    return text


def _require_script(value: Optional[str]) -> str:
    text = _require(value, "Translation")
    if not primary_script(text):
        raise InvalidInputError("Translation must start with a non-empty variant")
    return text


def submit_contribution(word: str, translation: str, target_lang: str, contributor_id: Optional[str] = None,
                        phonetic: Optional[str] = None, notes: Optional[str] = None,
                        region: Optional[str] = None) -> Contribution:
    word = normalize(_require(word, "Word"))
    translation = _require_script(translation)
    if target_lang not in RESOLVABLE_LANGUAGES:
        raise InvalidInputError(f"Unsupported target language: {target_lang!r}")
    with transaction() as conn:
        cursor = conn.execute(
            "INSERT INTO contributions (word, translation, phonetic, notes, target_lang, region, contributor_id, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (word, translation, (phonetic or "").strip() or None, (notes or "").strip() or None,
             target_lang, region, contributor_id, time.time()),
        )
        row = conn.execute("SELECT * FROM contributions WHERE id = ?", (cursor.lastrowid,)).fetchone()
    return _row_to_contribution(row)


def list_contributions(status: Optional[str] = None, target_lang: Optional[str] = None) -> List[Contribution]:
    if status is not None and status not in CONTRIBUTION_STATUSES:
        raise InvalidInputError(f"Unknown contribution status: {status!r}")
    clauses, params = [], []
    if status is not None:
        clauses.append("status = ?")
        params.append(status)
    if target_lang is not None:
        clauses.append("target_lang = ?")
        params.append(target_lang)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    with transaction() as conn:
        rows = conn.execute(f"SELECT * FROM contributions {where} ORDER BY created_at DESC, id DESC", params).fetchall()
    return [_row_to_contribution(row) for row in rows]


def review_contribution(contribution_id: int, reviewer_id: str, decision: str) -> Contribution:
    if decision not in ("approved", "rejected"):
        raise InvalidInputError("Decision must be 'approved' or 'rejected'")
    with transaction(immediate=True) as conn:
        current = conn.execute("SELECT translation FROM contributions WHERE id = ?", (contribution_id,)).fetchone()
        if current is None:
            raise ContributionNotFoundError(f"Contribution {contribution_id} not found")
        if decision == "approved" and not primary_script(current["translation"]):
            raise InvalidInputError("Cannot approve a translation with an empty first variant")
        conn.execute(
            "UPDATE contributions SET status = ?, reviewed_by = ?, reviewed_at = ? WHERE id = ?",
            (decision, reviewer_id, time.time(), contribution_id),
        )
        row = conn.execute("SELECT * FROM contributions WHERE id = ?", (contribution_id,)).fetchone()
    logger.info("Contribution reviewed", extra={"component": "contributions", "detail": decision})
    return _row_to_contribution(row)


def approved_entries(target_lang: str) -> Dict[str, DictionaryEntry]:
    """Approved words for one language; later approvals win on duplicates."""
    with transaction() as conn:
        rows = conn.execute(
            "SELECT word, translation, phonetic, notes FROM contributions "
            "WHERE status = 'approved' AND target_lang = ? ORDER BY reviewed_at ASC, id ASC",
            (target_lang,),
        ).fetchall()
    entries = {}
    for row in rows:
        if not primary_script(row["translation"]):
            logger.warning("Skipping approved word with an empty script",
                           extra={"component": "contributions", "lang": target_lang, "detail": row["word"]})
            continue
        entries[row["word"]] = DictionaryEntry(script=row["translation"], phonetic=row["phonetic"] or "", notes=row["notes"])
    return entries


def save_api_discovered_words(translations: Mapping, target_lang: str) -> int:
    """Queue remote-tier translations for review. Returns how many were new."""
    saved = 0
    now = time.time()
    with transaction() as conn:
        for word, translation in translations.items():
            word = normalize(word)
            translation = (translation or "").strip()
            if not word or not primary_script(translation):
                continue
            exists = conn.execute(
                "SELECT 1 FROM contributions WHERE word = ? AND target_lang = ?", (word, target_lang)
            ).fetchone()
            if exists:
                continue
            conn.execute(
                "INSERT INTO contributions (word, translation, target_lang, region, created_at) VALUES (?, ?, ?, ?, ?)",
                (word, translation, target_lang, API_DISCOVERY_REGION, now),
            )
            saved += 1
    if saved:
        logger.info("Saved API-discovered words", extra={"component": "contributions", "lang": target_lang, "count": saved})
    return saved
