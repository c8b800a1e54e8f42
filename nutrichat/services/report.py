import json
import logging
import re
from typing import Any, Callable, Optional

from nutrichat.core.report_schema import HEALTH_REPORT_FUNCTION_NAME

logger = logging.getLogger("uvicorn.error")

FENCED_BLOCK_RE = re.compile(r"```[A-Za-z0-9_-]*[ \t]*\n?(.*?)\n?[ \t]*```", re.DOTALL)


class EmptyReportError(ValueError):
    """The model answered, but nothing usable as a report was found."""


def parse_llm_json(raw_text: str) -> dict[str, Any]:
    candidates = [match.group(1) for match in FENCED_BLOCK_RE.finditer(raw_text)]
    candidates.append(raw_text)
    start = raw_text.find("{")
    end = raw_text.rfind("}")
    if start != -1 and end != -1 and end > start:
        candidates.append(raw_text[start : end + 1])
    for candidate in candidates:
        try:
            parsed = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    raise ValueError("Invalid JSON response from LLM")


def _first_candidate_parts(response: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return []
    content = candidates[0].get("content")
    if not isinstance(content, dict) or not isinstance(content.get("parts"), list):
        return []
    return [part for part in content["parts"] if isinstance(part, dict)]


def _call_args(call: Any, function_name: str) -> Optional[dict[str, Any]]:
    if not isinstance(call, dict) or call.get("name") != function_name:
        return None
    args = call.get("args")
    return args if isinstance(args, dict) and args else None


def _from_top_level_call(response: dict[str, Any], function_name: str) -> Optional[dict[str, Any]]:
    calls = response.get("functionCalls")
    if not isinstance(calls, list):
        return None
    for call in calls:
        args = _call_args(call, function_name)
        if args:
            return args
    return None


def _from_part_call(response: dict[str, Any], function_name: str) -> Optional[dict[str, Any]]:
    for part in _first_candidate_parts(response):
        args = _call_args(part.get("functionCall"), function_name)
        if args:
            return args
    return None


def _from_text(response: dict[str, Any], function_name: str) -> Optional[dict[str, Any]]:
    for part in _first_candidate_parts(response):
        text = part.get("text")
        if not isinstance(text, str) or not text.strip():
            continue
        try:
            parsed = parse_llm_json(text)
        except ValueError:
            logger.info("chat_report_text_part_unparsed chars=%s", len(text))
            continue
        if parsed:
            return parsed
    return None


ReportMatcher = Callable[[dict[str, Any], str], Optional[dict[str, Any]]]

REPORT_MATCHERS: tuple[ReportMatcher, ...] = (_from_top_level_call, _from_part_call, _from_text)


def extract_report(response: Any, function_name: str = HEALTH_REPORT_FUNCTION_NAME) -> dict[str, Any]:
    if isinstance(response, dict):
        for matcher in REPORT_MATCHERS:
            report = matcher(response, function_name)
            if report:
                return report
    raise EmptyReportError("The model did not produce a usable health report.")
