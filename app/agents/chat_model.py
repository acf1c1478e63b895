from typing import Any, List, Optional, Sequence
import logging

from pydantic_ai import Agent
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.groq import GroqModel
from pydantic_ai.providers.groq import GroqProvider

from app.settings import settings
from app.agents.request_assembler import ChatMessage

logger = logging.getLogger(__name__)


class ChatModelNotConfigured(RuntimeError):
    """Raised when the chat model is used without an API key"""


def to_model_messages(history: Sequence[ChatMessage]) -> List[ModelMessage]:
    """Convert our role/content messages to pydantic-ai message history"""
    messages: List[ModelMessage] = []
    for message in history:
        if message.role == "system":
            messages.append(ModelRequest(parts=[SystemPromptPart(content=message.content)]))
        elif message.role == "model":
            messages.append(ModelResponse(parts=[TextPart(content=message.content)]))
        else:
            messages.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
    return messages


class ChatModel:
    """
    Thin wrapper around a pydantic-ai Agent on Groq.

    `generate` returns the raw run result; callers turn it into text with
    `extract_text`, which reads the result's `output`.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model_name: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.model_name = model_name or settings.CHAT_MODEL
        self.max_tokens = max_tokens or settings.MAX_OUTPUT_TOKENS
        self._agent: Optional[Agent] = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    @property
    def agent(self) -> Agent:
        if self._agent is None:
            if not self.api_key:
                raise ChatModelNotConfigured("GROQ_API_KEY environment variable is not set")
            model = GroqModel(self.model_name, provider=GroqProvider(api_key=self.api_key))
            self._agent = Agent(model, model_settings={"max_tokens": self.max_tokens})
        return self._agent

    async def generate(self, history: Sequence[ChatMessage]) -> Any:
        """Run the model on a history whose last message is the user's question"""
        if not history:
            raise ValueError("history must contain at least the question")

        *earlier, question = history
        logger.debug("Calling %s with %d history messages", self.model_name, len(earlier))
        return await self.agent.run(question.content, message_history=to_model_messages(earlier))
