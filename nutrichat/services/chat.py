import logging
from typing import Any, Callable, Protocol, Union

import httpx

from nutrichat.core.context import ConversationContext
from nutrichat.core.prompt_modes import PromptMode, select_prompt_mode
from nutrichat.core.prompts import build_chat_prompt
from nutrichat.core.report_schema import HEALTH_REPORT_FUNCTION_NAME, report_tool_config, report_tools
from nutrichat.services.llm import GEMINI_CHAT_MODEL, GEMINI_REPORT_MODEL
from nutrichat.services.relay import StreamRelay
from nutrichat.services.report import EmptyReportError, extract_report

logger = logging.getLogger("uvicorn.error")

PromptBuilder = Callable[[ConversationContext, PromptMode], str]
ChatResult = Union[StreamRelay, dict[str, Any]]


class ChatLLMClient(Protocol):
    async def generate_content(
        self,
        prompt: str,
        *,
        model: str = ...,
        tools: Any = None,
        tool_config: Any = None,
    ) -> dict[str, Any]:
        ...

    async def open_content_stream(self, prompt: str, *, model: str = ...) -> httpx.Response:
        ...


class ChatOrchestrator:
    def __init__(
        self,
        llm_client: ChatLLMClient,
        *,
        prompt_builder: PromptBuilder = build_chat_prompt,
        chat_model: str = GEMINI_CHAT_MODEL,
        report_model: str = GEMINI_REPORT_MODEL,
    ) -> None:
        self.llm_client = llm_client
        self.prompt_builder = prompt_builder
        self.chat_model = chat_model
        self.report_model = report_model

    async def run(self, context: ConversationContext) -> ChatResult:
        mode = select_prompt_mode(context.history_length, context.wants_report)
        prompt = self.prompt_builder(context, mode)
        logger.info(
            "chat_request mode=%s language=%s history=%s input_chars=%s",
            mode.value,
            context.language,
            context.history_length,
            len(context.user_input),
        )
        if mode is not PromptMode.report_generation:
            return self.stream(prompt)
        return await self.generate_report(prompt)

    def stream(self, prompt: str) -> StreamRelay:
        # The upstream call happens on first iteration, so its failures end
        # the event stream like any other mid-stream error.
        async def open_stream() -> httpx.Response:
            return await self.llm_client.open_content_stream(prompt, model=self.chat_model)

        return StreamRelay(open_stream)

    async def generate_report(self, prompt: str) -> dict[str, Any]:
        response = await self.llm_client.generate_content(
            prompt,
            model=self.report_model,
            tools=report_tools(),
            tool_config=report_tool_config(),
        )
        try:
            report = extract_report(response, HEALTH_REPORT_FUNCTION_NAME)
        except EmptyReportError:
            logger.warning("chat_report_empty model=%s", self.report_model)
            raise
        logger.info("chat_report_generated keys=%s", ",".join(sorted(report)))
        return report
