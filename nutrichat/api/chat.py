import logging
from typing import Any, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, model_validator
from starlette.background import BackgroundTask

from nutrichat.core.context import ChatTurn, ConversationContext
from nutrichat.core.prompts import DEFAULT_LANGUAGE, SUPPORTED_LANGUAGES
from nutrichat.services.chat import ChatOrchestrator
from nutrichat.services.llm import GeminiClient, LLMRequestError, get_gemini_client
from nutrichat.services.relay import StreamRelay
from nutrichat.services.report import EmptyReportError

router = APIRouter(prefix="/ai", tags=["ai"])
logger = logging.getLogger("uvicorn.error")

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


class ChatTurnIn(BaseModel):
    role: str = Field(min_length=1, max_length=32)
    content: str = ""


class ChatRequest(BaseModel):
    input: str = Field(default="", max_length=1000)
    user_data: dict[str, Any] = Field(default_factory=dict)
    user_language: str = DEFAULT_LANGUAGE
    history: list[ChatTurnIn] = Field(default_factory=list)
    generate_report: bool = False

    @model_validator(mode="after")
    def validate_language(self) -> "ChatRequest":
        if self.user_language not in SUPPORTED_LANGUAGES:
            raise ValueError(f"Unsupported language code: {self.user_language}")
        return self

    def to_context(self) -> ConversationContext:
        return ConversationContext(
            user_input=self.input,
            user_data=self.user_data,
            language=self.user_language,
            history=tuple(ChatTurn(role=turn.role, content=turn.content) for turn in self.history),
            wants_report=self.generate_report,
        )


class ChatReportResponse(BaseModel):
    success: bool
    result: dict[str, Any]


def get_chat_orchestrator(llm_client: GeminiClient = Depends(get_gemini_client)) -> ChatOrchestrator:
    return ChatOrchestrator(llm_client)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


@router.post("/chat", response_model=None)
async def chat(
    payload: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
) -> Union[StreamingResponse, JSONResponse, ChatReportResponse]:
    try:
        result = await orchestrator.run(payload.to_context())
    except EmptyReportError as exc:
        logger.warning("chat_report_empty_response detail=%s", str(exc))
        return _error_response(422, str(exc))
    except LLMRequestError as exc:
        logger.exception(
            "chat_llm_request_error provider=%s model=%s status=%s detail=%s",
            exc.provider,
            exc.model,
            exc.status_code,
            str(exc),
        )
        return _error_response(502, str(exc))

    if isinstance(result, StreamRelay):
        return StreamingResponse(
            result.sse(),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
            background=BackgroundTask(result.aclose),
        )
    return ChatReportResponse(success=True, result=result)
