"""Prompt templates and dictionary-grounded translation rules.

Rules are rebuilt per request from the resolver's local breakdown, so the
model is told which words the dictionary already fixes.
"""
from typing import List, Sequence, Tuple

from models import SUPPORTED_LANGUAGES, BreakdownEntry, ReverseLookupResult

_CONFIDENCE_LABELS = {"high": "chắc chắn", "medium": "khá chắc", "low": "có thể"}

SYSTEM_PROMPT_TRANSLATION = """Bạn là chuyên gia ngôn ngữ học Việt Nam, chuyên sâu về:
- Tiếng Nùng (Lạng Sơn) - ngôn ngữ Tày-Thái
- Phương ngữ Miền Trung (Nghệ An, Hà Tĩnh)
- Ngữ pháp, từ vựng và văn hóa địa phương

NHIỆM VỤ: Dịch chính xác, giữ nguyên ý nghĩa và sắc thái văn hóa.
Luôn trả về bản dịch, phiên âm, định nghĩa từ vựng và ghi chú văn hóa."""

FEW_SHOT_EXAMPLES = """
VÍ DỤ DỊCH TIẾNG NÙNG:
- Input: "Bạn có rảnh không?"
  Output: {"translations":[{"language":"Tiếng Nùng (Lạng Sơn)","script":"Pì váng mí?","phonetic":"Pi vaŋ mi"}],"definitions":[{"word":"váng","definition":"rảnh rỗi, không bận","example":"Khỏi váng lai (Tôi rảnh lắm)"}],"culturalNote":"Khi hỏi thăm, người Nùng thường dùng 'váng' để thể hiện sự quan tâm nhẹ nhàng."}

VÍ DỤ DỊCH TIẾNG NGHỆ AN:
- Input: "Anh ấy đi đâu vậy?"
  Output: {"translations":[{"language":"Tiếng Nghệ An","script":"Anh nớ đi mô rứa?","phonetic":"Anh nớ đi mô rứa"}],"definitions":[{"word":"mô","definition":"đâu (hỏi địa điểm)","example":"Đi mô rứa?"}],"culturalNote":"'Mô', 'tê', 'răng', 'rứa' tạo nên sắc thái thân thương của người Nghệ Tĩnh."}
"""

SYSTEM_PROMPT_CHAT = (
    "Bạn là trợ lý ảo am hiểu văn hóa Nùng và Miền Trung. "
    "Hãy trả lời thân thiện, chính xác và đậm đà bản sắc."
)

SYSTEM_PROMPT_SPELL_CHECK = """Bạn là công cụ kiểm tra chính tả Tiếng Việt.
Nếu văn bản có lỗi, hãy trả về CÂU ĐÚNG gợi ý.
Nếu không có lỗi, trả về "NULL".
Chỉ trả về văn bản gợi ý hoặc "NULL". Không giải thích."""

UNKNOWN_WORD_MARKER = "[không rõ]"


def get_language_description(code: str) -> str:
    return SUPPORTED_LANGUAGES.get(code, code)


def _bullets(lines: Sequence[str], empty: str) -> str:
    if not lines:
        return f"    ({empty})"
    return "\n".join(f"    - {line}" for line in lines)


def build_vi_to_nung_rules(breakdown: Sequence[BreakdownEntry]) -> str:
    found: List[str] = []
    inferred: List[str] = []
    for entry in breakdown:
        if entry.note == "direct":
            line = f'"{entry.word}" phải dịch là "{entry.translation}"'
            if entry.phonetic:
                line += f" (phiên âm: {entry.phonetic})"
            if entry.detail:
                line += f" [{entry.detail}]"
            found.append(line)
        elif entry.note == "inferred":
            label = _CONFIDENCE_LABELS.get(entry.confidence or "low")
            inferred.append(f'"{entry.word}" có thể dịch là "{entry.translation}" ({label})')

    return f"""
=== QUY TẮC BẮT BUỘC CHO TIẾNG NÙNG ===
1. Từ vựng BẮT BUỘC từ từ điển:
{_bullets(found, "Không có từ vựng trực tiếp trong từ điển")}
2. Từ vựng SUY LUẬN (tham khảo):
{_bullets(inferred, "Không có từ vựng suy luận")}
3. "con" + động vật → "tua" hoặc "tu" (con lợn → tua mu); "con" + người → "lục".
4. "hơn" trong câu so sánh → "quá" (Con lợn to hơn con trâu → Tua mu cải quá tua vài).
5. Rảnh rỗi → "váng"; không (hỏi) → "mí"; anh/chị → "Pì".
6. KHÔNG dùng từ Tày hoặc Nùng Phạn Slinh.
"""


def build_nung_to_vi_rules(lookup: ReverseLookupResult) -> str:
    found = [f'"{m.nung_word}" → "{" / ".join(m.vietnamese)}"' for m in lookup.direct]
    partial = [f'"{m.nung_word}" ≈ "{" / ".join(m.vietnamese)}" (khớp một phần)' for m in lookup.partial]
    missing = [", ".join(lookup.not_found)] if lookup.not_found else []
    return f"""
=== QUY TẮC DỊCH TỪ TIẾNG NÙNG SANG TIẾNG VIỆT ===
1. Từ vựng TÌM THẤY trong từ điển (ưu tiên sử dụng):
{_bullets(found, "Không tìm thấy từ vựng chính xác trong từ điển")}
2. Từ vựng KHỚP MỘT PHẦN:
{_bullets(partial, "Không có từ vựng khớp một phần")}
3. Các từ KHÔNG TÌM THẤY (dịch theo ngữ cảnh):
{_bullets(missing, "Tất cả các từ đều được tìm thấy")}
4. "tua"/"tu" + động vật → "con" + tên động vật; "lục" trong gia đình → "con".
"""


def build_central_rules(breakdown: Sequence[BreakdownEntry] = ()) -> str:
    found = [f'"{e.word}" → "{e.translation}"' for e in breakdown if e.note == "direct" and e.word != e.translation]
    return f"""
=== QUY TẮC CHO TIẾNG NGHỆ AN / HÀ TĨNH ===
1. Từ vựng đặc trưng: mô, tê, răng, rứa, nì, nớ, chư, bầy tui, choa.
2. Từ điển địa phương:
{_bullets(found, "Không có từ địa phương trong câu")}
"""


STANDARD_VIETNAMESE_RULES = (
    "Dịch chuẩn xác sang tiếng Việt phổ thông, giải thích rõ nghĩa nếu là từ cổ hoặc từ địa phương khó hiểu."
)


def get_translation_rules(text: str, source: str, target: str, resolver) -> Tuple[str, str]:
    """Return (target description, rules block) for a language pair."""
    if source == "nung" and target == "vi":
        lookup = resolver.dictionary_for("nung").reverse_lookup(text)
        return "Tiếng Việt phổ thông", build_nung_to_vi_rules(lookup)
    if target == "nung":
        return get_language_description("nung"), build_vi_to_nung_rules(resolver.resolve_locally(text, "nung"))
    if target == "central":
        return ("Tiếng Việt phương ngữ Nghệ An / Hà Tĩnh",
                build_central_rules(resolver.resolve_locally(text, "central")))
    return "Tiếng Việt phổ thông", STANDARD_VIETNAMESE_RULES


def build_translation_prompt(text: str, source_desc: str, target_desc: str, rules: str) -> str:
    return f"""{FEW_SHOT_EXAMPLES}

=== NHIỆM VỤ HIỆN TẠI ===
Dịch từ {source_desc} sang {target_desc}
{rules}

Chỉ trả về một JSON object, không markdown:
{{"translations":[{{"language":"..","script":"..","phonetic":".."}}],"definitions":[{{"word":"..","definition":"..","example":".."}}],"culturalNote":".."}}

Câu cần dịch: "{text}"
"""


def build_spell_check_prompt(text: str) -> str:
    return f'{SYSTEM_PROMPT_SPELL_CHECK}\n\nVăn bản: "{text}"'


def build_missing_words_prompt(words: Sequence[str], target_desc: str) -> str:
    return f"""Dịch từng TỪ TIẾNG VIỆT sau sang {target_desc}.

DANH SÁCH TỪ CẦN DỊCH: {", ".join(words)}

YÊU CẦU:
1. Dịch TỪNG TỪ RIÊNG LẺ, không phải cả câu
2. Nếu không biết từ nào, ghi "{UNKNOWN_WORD_MARKER}"
3. Ưu tiên phương ngữ Lạng Sơn nếu có nhiều biến thể

Chỉ trả về JSON: {{"translations": {{"từ_tiếng_việt": "bản_dịch"}}}}"""
