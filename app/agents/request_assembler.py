from typing import List, Literal, Optional, Sequence, Tuple
import re

from pydantic import BaseModel

SYSTEM_PROMPT = """You are a knowledgeable Bible expert assistant. Your purpose is to answer questions about the Bible, Christian theology, and biblical topics with accuracy and clarity.

When answering:
- Focus on biblical content and interpretation
- Reference specific Bible verses when relevant (include book, chapter:verse)
- Be respectful and scholarly in tone
- If a question is not about the Bible, politely redirect to biblical topics
- Keep responses concise but informative (under 300 tokens)
- Provide multiple perspectives when applicable (e.g., different theological viewpoints)"""

SYSTEM_ACKNOWLEDGEMENT = "I understand. I'm ready to help with biblical questions."

WEB_CONTEXT_GUIDANCE = (
    "Note: the following short web-sourced commentary snippets are provided as reference — "
    "you may use them to inform your answer and should cite the source where appropriate."
)

MAX_WEB_SNIPPET_CHARS = 200

URL_PATTERN = re.compile(r'(https?://\S+)')


class ChatMessage(BaseModel):
    role: Literal["user", "model", "system"]
    content: str


class ChatTurn(BaseModel):
    """A prior conversation turn as sent by clients"""
    role: Literal["user", "assistant", "system", "model"]
    content: str


# (reference, text) pairs from verse expansion
VerseBlock = Tuple[str, str]


def format_web_snippet(index: int, raw: str, max_len: int = MAX_WEB_SNIPPET_CHARS) -> str:
    """
    Render one web snippet as "Web context [n]: body (source: url)".
    The URL is pulled out of the body, and the body is cut to max_len characters.
    """
    raw = str(raw or "")
    match = URL_PATTERN.search(raw)
    url = match.group(1) if match else None

    body = raw.replace(url, "").strip() if url else raw.strip()
    # Drop the separator the URL used to hang off
    body = body.rstrip(" —").strip()
    if len(body) > max_len:
        body = body[:max_len - 1].strip() + "…"

    if url:
        return f"Web context [{index}]: {body} (source: {url})"
    return f"Web context [{index}]: {body}"


class RequestAssembler:
    """
    Builds the outbound message history.

    Order is fixed: preamble (new conversations only), verse blocks, prior
    turns, retrieved context, then the question.
    """

    def preamble(self) -> List[ChatMessage]:
        return [
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="model", content=SYSTEM_ACKNOWLEDGEMENT),
        ]

    def verse_messages(self, verse_blocks: Sequence[VerseBlock]) -> List[ChatMessage]:
        return [
            ChatMessage(role="user", content=f"Reference {ref}: {text}")
            for ref, text in verse_blocks
        ]

    def history_messages(self, prior_turns: Sequence) -> List[ChatMessage]:
        messages = []
        for turn in prior_turns:
            role = turn.get("role") if isinstance(turn, dict) else getattr(turn, "role", None)
            content = turn.get("content") if isinstance(turn, dict) else getattr(turn, "content", "")
            messages.append(ChatMessage(role="user" if role == "user" else "model", content=str(content)))
        return messages

    def context_messages(self, snippets: Sequence[str], web_sourced: bool = False) -> List[ChatMessage]:
        snippets = [s for s in snippets if isinstance(s, str) and s.strip()]
        if not snippets:
            return []

        if not web_sourced:
            return [ChatMessage(role="system", content=f"Related context: {s}") for s in snippets]

        messages = [ChatMessage(role="system", content=WEB_CONTEXT_GUIDANCE)]
        for i, snippet in enumerate(snippets, start=1):
            messages.append(ChatMessage(role="system", content=format_web_snippet(i, snippet)))
        return messages

    def assemble(
        self,
        question: str,
        prior_turns: Optional[Sequence] = None,
        snippets: Optional[Sequence[str]] = None,
        verse_blocks: Optional[Sequence[VerseBlock]] = None,
        web_sourced: bool = False,
    ) -> List[ChatMessage]:
        prior_turns = list(prior_turns or [])

        messages: List[ChatMessage] = []
        if not prior_turns:
            messages.extend(self.preamble())
        messages.extend(self.verse_messages(verse_blocks or []))
        messages.extend(self.history_messages(prior_turns))
        messages.extend(self.context_messages(snippets or [], web_sourced=web_sourced))
        messages.append(ChatMessage(role="user", content=question))
        return messages
