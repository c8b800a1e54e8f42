from datetime import datetime, timezone

from nutrichat.core.context import ChatTurn, ConversationContext
from nutrichat.core.prompt_modes import PromptMode
from nutrichat.core.prompts import (
    build_chat_prompt,
    format_history,
    format_records,
    has_diet_records,
    personalized_summary,
    response_language,
)

USER_DATA = {
    "basicInfo": {"age": 34, "gender": "female", "height": 165, "currentWeight": 68, "weightUnit": "kg"},
    "nutritionGoals": {"userTargetCalories": 1800, "userTargetProtein": 110},
    "weightHistory": [{"date": "2026-10-01", "weight": 68.4, "weightUnit": "kg"}],
    "dietRecords": [{"date": "2026-10-01", "name": "Oatmeal", "calories": 320, "protein": 12}],
    "exerciseRecords": [
        {
            "date": "2026-10-01",
            "steps": 8000,
            "totalCaloriesBurned": 350,
            "exerciseList": [{"type": "running", "duration": 30, "caloriesBurned": 280}],
        }
    ],
}


def test_context_is_read_only() -> None:
    source = {"basicInfo": {}}
    context = ConversationContext(user_input="hi", user_data=source, history=[ChatTurn("user", "hi")])
    source["extra"] = 1
    assert "extra" not in context.user_data
    assert isinstance(context.history, tuple)
    assert context.history_length == 1


def test_response_language_falls_back_to_traditional_chinese() -> None:
    assert response_language("en") == "English"
    assert response_language("xx") == "繁體中文"


def test_format_records() -> None:
    records = format_records(USER_DATA)
    assert records["weight"] == "2026-10-01|68.4kg"
    assert records["diet"] == "2026-10-01|Oatmeal|320|12|0|0"
    assert records["exercise"] == "2026-10-01|8000|350|running, 30min, 280kcal"
    assert format_records({}) == {"weight": "", "diet": "", "exercise": ""}


def test_has_diet_records() -> None:
    assert has_diet_records(USER_DATA) is True
    assert has_diet_records({"dietRecords": []}) is False


def test_history_keeps_last_ten_turns_and_truncates() -> None:
    history = tuple(ChatTurn("user" if i % 2 == 0 else "model", f"turn {i}") for i in range(12))
    history += (ChatTurn("user", "x" * 250),)
    text = format_history(history)
    assert "turn 2" not in text
    assert "turn 3" in text
    assert "x" * 200 + "..." in text
    assert "**Nutritionist**: turn 11" in text


def test_report_prompt_mentions_window_and_food_analysis() -> None:
    context = ConversationContext(user_input="", user_data={"basicInfo": {}}, language="en", wants_report=True)
    now = datetime(2026, 10, 18, tzinfo=timezone.utc)
    prompt = build_chat_prompt(context, PromptMode.report_generation, now=now)
    assert "2026-09-18 to 2026-10-18" in prompt
    assert "foodAnalysis must return empty" in prompt
    assert "generate_visual_health_report" in prompt
    assert "YOU MUST RESPOND ENTIRELY IN: English" in prompt


def test_follow_up_prompt_includes_history_and_question() -> None:
    context = ConversationContext(
        user_input="What about dinner?",
        user_data=USER_DATA,
        language="en",
        history=(ChatTurn("user", "Breakfast ideas?"), ChatTurn("model", "Try oatmeal.")),
    )
    prompt = build_chat_prompt(context, PromptMode.follow_up_qa)
    assert "Recent conversation history:" in prompt
    assert "**Nutritionist**: Try oatmeal." in prompt
    assert prompt.rstrip().endswith("conversation.")
    assert "What about dinner?" in prompt


def test_risky_question_adds_safety_instructions() -> None:
    context = ConversationContext(user_input="Are diet pills a good idea?", language="en")
    prompt = build_chat_prompt(context, PromptMode.first_turn_qa)
    assert "Emergency safety handling instructions" in prompt
    safe = build_chat_prompt(ConversationContext(user_input="Protein for lunch?", language="en"), PromptMode.first_turn_qa)
    assert "Emergency safety handling instructions" not in safe


def test_summary_ignores_non_object_profile_sections() -> None:
    summary = personalized_summary({"basicInfo": "unknown", "nutritionGoals": [1800]})
    assert "- Basic Info: Unknown years old, Unknown, height Unknowncm" in summary
    assert "Daily calories Not set kcal" in summary

    context = ConversationContext(user_input="Hi", user_data={"basicInfo": "unknown", "nutritionGoals": 5})
    assert "Hi" in build_chat_prompt(context, PromptMode.first_turn_qa)
