"""Pydantic schemas and constants for nungdict."""
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# --- Constants ---
SUPPORTED_LANGUAGES = {
    "vi": "Tiếng Việt",
    "nung": "Tiếng Nùng (Lạng Sơn)",
    "central": "Tiếng Nghệ An / Hà Tĩnh",
}

# Target languages that ship a local dictionary
RESOLVABLE_LANGUAGES = ("nung", "central")

SORT_ORDERS = ("newest", "oldest", "most_liked")
REPORT_STATUSES = ("pending", "resolved", "dismissed")
REPORT_OUTCOMES = ("resolved", "dismissed")
CONTRIBUTION_STATUSES = ("pending", "approved", "rejected")

ResolutionNote = Literal["direct", "inferred", "api", "unknown"]
Confidence = Literal["high", "medium", "low"]


# --- Dictionary ---

class DictionaryEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    script: str
    phonetic: str = ""
    notes: Optional[str] = None

    @property
    def primary_script(self) -> str:
        return self.script.split("/")[0].strip()

    @property
    def variants(self) -> List[str]:
        return [v.strip() for v in self.script.split("/") if v.strip()]


class ReverseMatch(BaseModel):
    nung_word: str
    vietnamese: List[str]
    notes: Optional[str] = None


class ReverseLookupResult(BaseModel):
    direct: List[ReverseMatch] = []
    partial: List[ReverseMatch] = []
    not_found: List[str] = []


# --- Resolver ---

class BreakdownEntry(BaseModel):
    word: str
    translation: str
    note: ResolutionNote
    position: int = 0  # token index where the span starts
    phonetic: Optional[str] = None
    confidence: Optional[Confidence] = None
    detail: Optional[str] = None


class TranslationStats(BaseModel):
    total_spans: int = 0
    local_hits: int = 0
    inferred: int = 0
    api_calls: int = 0
    unknown: int = 0


class TieredTranslationResult(BaseModel):
    original: str
    target_language: str
    translation: str
    breakdown: List[BreakdownEntry]
    stats: TranslationStats
    api_called: bool
    time_taken_ms: float


class TranslationPreview(BaseModel):
    phrases: List[BreakdownEntry] = []
    single_words: List[BreakdownEntry] = []
    inferred: List[BreakdownEntry] = []
    needs_lookup: List[str] = []
    coverage: int = 0  # percent of spans resolved locally


# --- LLM envelopes ---

class MissingWordsPayload(BaseModel):
    translations: Dict[str, Optional[str]] = {}


class TranslationDetail(BaseModel):
    language: str = ""
    script: str
    phonetic: str = ""


class WordDefinition(BaseModel):
    word: str
    definition: str = ""
    example: str = ""


class TranslationPayload(BaseModel):
    translations: List[TranslationDetail]
    definitions: List[WordDefinition] = []
    culturalNote: Optional[str] = None


# --- Discussion ---

class DiscussionNode(BaseModel):
    id: int
    subject_key: str
    author_id: Optional[str] = None
    content: str
    like_count: int = 0
    parent_id: Optional[int] = None
    depth: int = 1
    created_at: float
    updated_at: float
    liked_by_viewer: Optional[bool] = None
    replies: List["DiscussionNode"] = []


DiscussionNode.model_rebuild()


class Report(BaseModel):
    id: int
    node_id: int
    reporter_id: str
    reason: Optional[str] = None
    status: str = "pending"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[float] = None
    action_taken: Optional[str] = None
    created_at: float
    node_content: Optional[str] = None
    node_author_id: Optional[str] = None
    node_deleted: bool = False


class Contribution(BaseModel):
    id: int
    word: str
    translation: str
    phonetic: Optional[str] = None
    notes: Optional[str] = None
    source_lang: str = "vi"
    target_lang: str
    region: Optional[str] = None
    contributor_id: Optional[str] = None
    status: str = "pending"
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[float] = None
    created_at: float


# --- Request schemas ---

class ResolveRequest(BaseModel):
    text: str
    target_language: str = "nung"
    save_discoveries: bool = True


class TranslateRequest(BaseModel):
    text: str
    target_language: str = "nung"
    source_language: str = "vi"


class SpellCheckRequest(BaseModel):
    text: str


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str
    history: List[ChatTurn] = []


class CreateDiscussionRequest(BaseModel):
    original_text: str
    target_language: str
    content: str
    parent_id: Optional[int] = None


class UpdateDiscussionRequest(BaseModel):
    content: str


class ReportRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class ReviewReportRequest(BaseModel):
    outcome: str
    action_note: Optional[str] = None
    delete_node: bool = False


class ContributionRequest(BaseModel):
    word: str
    translation: str
    target_language: str = "nung"
    phonetic: Optional[str] = None
    notes: Optional[str] = None
    region: Optional[str] = None


class ReviewContributionRequest(BaseModel):
    decision: str
