from enum import Enum

# A single exchange already holds two turns (user + assistant), so anything
# up to two turns still counts as the first real exchange.
FIRST_TURN_HISTORY_LIMIT = 2


class PromptMode(str, Enum):
    report_generation = "report_generation"
    first_turn_qa = "first_turn_qa"
    follow_up_qa = "follow_up_qa"


def select_prompt_mode(history_length: int, wants_report: bool) -> PromptMode:
    if history_length > FIRST_TURN_HISTORY_LIMIT:
        return PromptMode.follow_up_qa
    if wants_report:
        return PromptMode.report_generation
    return PromptMode.first_turn_qa
