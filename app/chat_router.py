# Import FastAPI router and dependencies
from functools import lru_cache
from typing import Any, List
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError, field_validator

from app.settings import settings
from app.agents.chat_model import ChatModel
from app.agents.chat_pipeline import ChatPipeline
from app.agents.context_retriever import ContextRetriever
from app.agents.request_assembler import ChatTurn
from app.agents.verse_fetcher import VerseFetcher
from app.agents.web_search import WebSearchClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Bible Chat"])

GENERIC_FAILURE = "Failed to process your question. Please try again."

# Pydantic models for request/response
class ChatRequest(BaseModel):
    question: str = Field(..., description="The user's question, e.g. 'Explain John 3:16'")
    contents: List[ChatTurn] = Field(default_factory=list, description="Prior conversation turns")
    devMock: bool = Field(default=False, description="Ask for a canned answer (development only)")

    @field_validator("devMock", mode="before")
    @classmethod
    def dev_mock_only_when_true(cls, value: Any) -> bool:
        # Only a JSON `true` enables it; strings and numbers do not
        return value is True

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Invalid or missing `question` field")
        return value

class VerseResult(BaseModel):
    reference: str
    text: str

class VerseLookupResponse(BaseModel):
    reference: str
    verses: List[VerseResult]


@lru_cache(maxsize=1)
def get_chat_pipeline() -> ChatPipeline:
    """Process-wide pipeline; built on first use"""
    web_client = WebSearchClient()
    return ChatPipeline(
        verse_fetcher=VerseFetcher(),
        retriever=ContextRetriever.default(web_client),
        chat_model=ChatModel(),
    )

def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})

def _validation_message(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    location = first.get("loc", ())
    if location and location[0] == "question":
        return "Invalid or missing `question` field"
    if location and location[0] == "contents":
        if len(location) == 1:
            return "`contents` must be an array when provided"
        return "Invalid item in `contents` array"
    return "Invalid request body"


@router.post("/chat")
async def chat(request: Request, pipeline: ChatPipeline = Depends(get_chat_pipeline)):
    """
    Answer a Bible question.

    - **question**: the question text
    - **contents**: prior turns `[{role, content}]`; roles user/assistant/system/model
    - **devMock**: canned answer when the server runs in development mode

    Returns the answer as plain text.
    """
    try:
        raw_body = await request.json()
    except ValueError:
        raw_body = None
    if not isinstance(raw_body, dict):
        return _error(400, "Invalid request body")

    try:
        body = ChatRequest.model_validate(raw_body)
    except ValidationError as e:
        return _error(400, _validation_message(e))

    dev_mock = settings.DEV_MOCK or (settings.is_development and body.devMock)
    if dev_mock:
        try:
            return PlainTextResponse(await pipeline.dev_mock_answer(body.question))
        except Exception:
            logger.exception("Dev mock answer failed")
            return _error(500, GENERIC_FAILURE)

    if not pipeline.chat_model.configured:
        logger.error("GROQ_API_KEY is not set in the environment")
        return _error(500, "GROQ_API_KEY missing")

    try:
        answer = await pipeline.answer(body.question, body.contents)
    except Exception:
        logger.exception("Error calling chat model")
        return _error(500, GENERIC_FAILURE)

    return PlainTextResponse(answer)


@router.get("/chat")
async def chat_status():
    """Whether server-side dev mock is enabled, so clients can show an indicator"""
    return {"devMockEnabled": settings.DEV_MOCK}


@router.get("/verses/{reference:path}", response_model=VerseLookupResponse)
async def get_verses(reference: str, pipeline: ChatPipeline = Depends(get_chat_pipeline)):
    """
    Look up a verse, range or chapter.

    Examples:
    - Single verse: "John 3:16"
    - Range: "John 3:16-18"
    - Cross-chapter range: "John 3:16-4:2"
    - Chapter: "Psalm 23"
    """
    if not reference.strip():
        raise HTTPException(status_code=400, detail="Reference is required")

    verses = await pipeline.verse_fetcher.fetch_range(reference)
    results = [VerseResult(reference=ref, text=text) for ref, text in verses.items() if text is not None]
    if not results:
        raise HTTPException(status_code=404, detail=f"No verse(s) found for reference: {reference.strip()}")

    return VerseLookupResponse(reference=reference.strip(), verses=results)

