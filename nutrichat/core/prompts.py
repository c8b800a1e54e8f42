from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional

from nutrichat.core.context import ChatTurn, ConversationContext
from nutrichat.core.prompt_modes import PromptMode
from nutrichat.core.safety import detect_risk_flags, risk_handling_instructions

DEFAULT_LANGUAGE = "zh_TW"
HISTORY_TURN_LIMIT = 10
HISTORY_TURN_MAX_CHARS = 200
REPORT_WINDOW_DAYS = 30

LANGUAGE_NAMES = {
    "zh_TW": "繁體中文",
    "zh_CN": "简体中文",
    "en": "English",
    "ja": "日本語",
    "ko": "한국어",
    "vi": "Tiếng Việt",
    "th": "ภาษาไทย",
    "ms": "Bahasa Melayu",
    "id": "Bahasa Indonesia",
    "fr": "Français",
    "de": "Deutsch",
    "es": "Español",
    "pt_BR": "Português (Brasil)",
}
SUPPORTED_LANGUAGES = frozenset(LANGUAGE_NAMES)

DISCLAIMERS = {
    "zh_TW": "此營養建議僅供參考，不可替代專業醫療諮詢。如有健康疑慮，請諮詢合格醫療人員。",
    "zh_CN": "此营养建议仅供参考，不可替代专业医疗咨询。如有健康疑虑，请咨询合格医疗人员。",
    "en": (
        "This nutritional advice is for reference only and cannot replace professional medical consultation. "
        "Please consult qualified healthcare professionals for health concerns."
    ),
    "ja": "この栄養アドバイスは参考のためのものであり、専門的な医療相談に代わるものではありません。",
    "ko": "이 영양 조언은 참고용이며 전문적인 의료 상담을 대체할 수 없습니다.",
    "fr": "Ce conseil nutritionnel est donné à titre de référence uniquement et ne remplace pas une consultation médicale.",
    "de": "Diese Ernährungsberatung dient nur zur Orientierung und ersetzt keine professionelle medizinische Beratung.",
    "es": "Este consejo nutricional es solo de referencia y no reemplaza una consulta médica profesional.",
    "pt_BR": "Este conselho nutricional é apenas para referência e não substitui uma consulta médica profissional.",
}

BASE_ROLE = """
You are a Registered Dietitian (RD) with a Master's degree in Nutrition and over 10 years of clinical experience.
Expertise: personalized nutrition planning, weight management, sports nutrition, behaviour change.

Safety boundaries:
- You are not a medical doctor; never diagnose, prescribe or give treatment advice.
- Recommend a medical professional whenever diseases, medications or supplements come up.
- Daily intake under 1200 kcal or weekly loss above 1.5 kg: gently suggest a safer pace.
- Pregnant or nursing users, minors and chronic disease patients need medical confirmation.
"""


@dataclass(frozen=True)
class PromptTemplate:
    mode: PromptMode
    situation: str
    requirements: tuple[str, ...]
    closing: str


PROMPT_TEMPLATES: dict[PromptMode, PromptTemplate] = {
    PromptMode.report_generation: PromptTemplate(
        mode=PromptMode.report_generation,
        situation=(
            "This is the user's first consultation. Analyse the last 30 days of data and produce the full "
            "visual health report by calling generate_visual_health_report."
        ),
        requirements=(
            "Fill every field of the report schema from the supplied data; never invent records.",
            "Filter obviously mistyped weight entries out of the chart series.",
            "Report summary: 2-3 sentences, one strength and the most important improvement, no greetings.",
            "Provide 2-4 insights and 1-3 concrete, checkable actions.",
        ),
        closing="Call generate_visual_health_report with the complete structured report.",
    ),
    PromptMode.first_turn_qa: PromptTemplate(
        mode=PromptMode.first_turn_qa,
        situation="The user chose simple Q&A mode; answer the question without generating a full report.",
        requirements=(
            "Answer directly, without openings such as 'hello' or 'thanks for asking'.",
            "Personalize with age, gender, height, weight, activity level and BMR/TDEE where available.",
            "Give specific quantities, times and frequencies rather than abstract advice.",
            "Show requested records as markdown tables (Date | Food | Calories | Protein | Carbs | Fat).",
        ),
        closing="Provide safe, personalized nutrition advice based on the user's data.",
    ),
    PromptMode.follow_up_qa: PromptTemplate(
        mode=PromptMode.follow_up_qa,
        situation=(
            "This is an ongoing consultation. Do not regenerate a full report; answer the latest question "
            "and stay consistent with the conversation so far."
        ),
        requirements=(
            "Reference earlier advice where it helps continuity.",
            "Answer directly, without introductions or pleasantries.",
            "Give specific quantities, times and frequencies rather than abstract advice.",
            "If the user follows up on earlier recommendations, adjust them instead of repeating them.",
        ),
        closing="Provide continuous, personalized nutrition advice based on the user's data and the conversation.",
    ),
}


def response_language(language: str) -> str:
    return LANGUAGE_NAMES.get(language, LANGUAGE_NAMES[DEFAULT_LANGUAGE])


def disclaimer_for(language: str) -> str:
    return DISCLAIMERS.get(language) or DISCLAIMERS["en"]


def has_diet_records(user_data: Mapping[str, Any]) -> bool:
    records = user_data.get("dietRecords")
    return isinstance(records, list) and len(records) > 0


def _records(user_data: Mapping[str, Any], key: str) -> list[dict[str, Any]]:
    value = user_data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _section(user_data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = user_data.get(key)
    return value if isinstance(value, Mapping) else {}


def format_records(user_data: Mapping[str, Any]) -> dict[str, str]:
    weight = [
        f"{row.get('date', '')}|{row.get('weight', '')}{row.get('weightUnit', '')}"
        for row in _records(user_data, "weightHistory")
    ]
    diet = [
        f"{row.get('date', '')}|{row.get('name') or ''}|{row.get('calories') or 0}|"
        f"{row.get('protein') or 0}|{row.get('carbs') or 0}|{row.get('fat') or 0}"
        for row in _records(user_data, "dietRecords")
    ]
    exercise = []
    for row in _records(user_data, "exerciseRecords"):
        items = ";".join(
            f"{ex.get('type', '')}, {ex.get('duration', '')}min, {ex.get('caloriesBurned', '')}kcal"
            for ex in row.get("exerciseList") or []
            if isinstance(ex, dict)
        )
        exercise.append(f"{row.get('date', '')}|{row.get('steps', '')}|{row.get('totalCaloriesBurned', '')}|{items}")
    return {
        "weight": " | ".join(weight),
        "diet": " | ".join(diet),
        "exercise": " | ".join(exercise),
    }


def personalized_summary(user_data: Mapping[str, Any]) -> str:
    basic = _section(user_data, "basicInfo")
    goals = _section(user_data, "nutritionGoals")
    weight_unit = basic.get("weightUnit") or "kg"
    height_unit = basic.get("heightUnit") or "cm"
    return "\n".join(
        [
            f"- Basic Info: {basic.get('age') or 'Unknown'} years old, {basic.get('gender') or 'Unknown'}, "
            f"height {basic.get('height') or 'Unknown'}{height_unit}",
            f"- Weight Status: Current {basic.get('currentWeight') or 'Unknown'}{weight_unit}, "
            f"Target {basic.get('targetWeight') or 'Unknown'}{weight_unit}, "
            f"Initial {basic.get('initWeight') or 'Unknown'}{weight_unit}",
            f"- Metabolic Data: BMR {basic.get('bmr') or 'Not calculated'} kcal/day, "
            f"TDEE {basic.get('tdee') or 'Not calculated'} kcal/day",
            f"- Activity Level: {basic.get('activityLevel') or 'Unknown'}",
            f"- Health Goal: {basic.get('goal') or 'Unknown'}",
            f"- Nutrition Goals: Daily calories {goals.get('userTargetCalories') or 'Not set'} kcal, "
            f"Protein {goals.get('userTargetProtein') or 'Not set'}g",
        ]
    )


def format_history(history: tuple[ChatTurn, ...]) -> str:
    lines = []
    for turn in history[-HISTORY_TURN_LIMIT:]:
        speaker = "User" if turn.is_user else "Nutritionist"
        content = turn.content
        if len(content) > HISTORY_TURN_MAX_CHARS:
            content = content[:HISTORY_TURN_MAX_CHARS] + "..."
        lines.append(f"**{speaker}**: {content}")
    return "\n".join(lines)


def build_chat_prompt(
    context: ConversationContext, mode: PromptMode, now: Optional[datetime] = None
) -> str:
    template = PROMPT_TEMPLATES[mode]
    language = response_language(context.language)
    records = format_records(context.user_data)
    lines = [
        f"YOU MUST RESPOND ENTIRELY IN: {language}. Every word must be in {language}; do not mix languages.",
        "",
        BASE_ROLE.strip(),
        "",
        f"Situation: {template.situation}",
    ]
    if mode is PromptMode.report_generation:
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=REPORT_WINDOW_DAYS)
        lines.append(f"Analysis window: {since.date().isoformat()} to {now.date().isoformat()}")
        lines.append(
            "Diet records detected, food analysis can be performed."
            if has_diet_records(context.user_data)
            else "No diet records detected, foodAnalysis must return empty bestFoods and worstFoods arrays."
        )
    if mode is PromptMode.follow_up_qa and context.history:
        lines.extend(["", "Recent conversation history:", format_history(context.history)])
    lines.extend(
        [
            "",
            "User profile:",
            personalized_summary(context.user_data),
            "",
            f"Weight Records: {records['weight'] or 'No weight records'}",
            f"Diet Records: {records['diet'] or 'No diet records'}",
            f"Exercise Records: {records['exercise'] or 'No exercise records'}",
            "",
            "Complete health data:",
            json.dumps(dict(context.user_data), ensure_ascii=False, indent=2, default=str),
        ]
    )
    if mode is not PromptMode.report_generation:
        lines.extend(["", "User's question:", context.user_input])
    lines.extend(["", "Response requirements:", *[f"- {item}" for item in template.requirements]])
    lines.extend(["", f"Disclaimer: {disclaimer_for(context.language)}"])
    if mode is not PromptMode.report_generation and detect_risk_flags(context.user_input, context.language):
        lines.extend(["", risk_handling_instructions(language)])
    lines.extend(["", template.closing])
    return "\n".join(lines).strip()
