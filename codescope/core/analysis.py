# codescope/core/analysis.py
import asyncio
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol

import requests
from loguru import logger

from ..config.schema import AnalysisConfig
from .context_selection import ContextSelection
from .errors import AnalysisRequestFailure
from .models import ContextFile
from .store import FileStore
from .token_counter import count_tokens

DEFAULT_PREAMBLE = (
    "Analyze only the following code context and answer the question. "
    "Do not use any external knowledge or assumptions outside of the provided context:"
)
NO_CONTEXT_MESSAGE = "No files selected for analysis"
GENERIC_FAILURE_MESSAGE = "Failed to analyze code. Please try again."


# --- Prompt assembly ---

def build_context_block(context_files: List[ContextFile], active_path: Optional[str] = None,
                        active_content: Optional[str] = None) -> str:
    """
    Concatenates 'File: <path>' blocks for the effective context. The active
    file is appended under 'Current file:', or stands alone (content only)
    when nothing else is selected.
    """
    context = "\n\n".join(f"File: {f.path}\n{f.content}" for f in context_files)
    if not active_content:
        return context
    if not context:
        return active_content
    return f"{context}\n\nCurrent file: {active_path}\n{active_content}"


def build_prompt(context_block: str, question: str, preamble: Optional[str] = None) -> str:
    if not context_block:
        raise AnalysisRequestFailure(NO_CONTEXT_MESSAGE)
    return f"{preamble or DEFAULT_PREAMBLE}\n\n{context_block}\n\nQuestion: {question}"


# --- Service boundary ---

class AnalysisService(Protocol):
    async def analyze(self, prompt: str) -> str:
        """Returns the answer text or raises AnalysisRequestFailure."""
        ...


class HttpAnalysisService:
    """Sends the prompt to an OpenAI-compatible chat-completions endpoint."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def _headers(self) -> dict:
        api_key = os.environ.get(self.config.api_key_env)
        if not api_key:
            raise AnalysisRequestFailure(f"Environment variable {self.config.api_key_env} is not set.")
        return {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}

    def _post_sync(self, prompt: str) -> str:
        payload = {
            "model": self.config.model,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = self._headers()
        try:
            response = requests.post(self.config.endpoint, json=payload, headers=headers, timeout=self.config.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            raise AnalysisRequestFailure(f"Analysis request timed out after {self.config.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise AnalysisRequestFailure(f"Analysis request failed: {e}") from e
        except ValueError as e:
            raise AnalysisRequestFailure("Analysis service returned invalid JSON") from e

        try:
            return data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise AnalysisRequestFailure("Analysis service returned an unexpected response") from e

    async def analyze(self, prompt: str) -> str:
        logger.info(f"Sending analysis request to {self.config.endpoint} (model={self.config.model})")
        return await asyncio.to_thread(self._post_sync, prompt)


# --- Question/answer session ---

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class ChatMessage:
    role: MessageRole
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    is_loading: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class AnalysisSession:
    """
    Question/answer log against the analysis service. Failures become
    readable assistant messages; nothing is retried.
    """

    def __init__(self, service: AnalysisService, max_context_tokens: int = 8192,
                 preamble: Optional[str] = None):
        self.service = service
        self.max_context_tokens = max_context_tokens
        self.preamble = preamble
        self.messages: List[ChatMessage] = []
        self.is_analyzing = False

    def prepare_prompt(self, question: str, selection: ContextSelection, store: FileStore) -> str:
        active = store.active_file
        active_path = active.path if active else None
        active_content = active.content if active else None
        files = selection.effective_context(active_path, store.content_of)
        prompt = build_prompt(build_context_block(files, active_path, active_content), question, self.preamble)
        tokens = count_tokens(prompt)
        if tokens > self.max_context_tokens:
            logger.warning(f"Prompt is {tokens} tokens, above the configured budget of {self.max_context_tokens}.")
        else:
            logger.debug(f"Prompt assembled: {len(files)} context file(s), {tokens} tokens.")
        return prompt

    async def ask(self, question: str, selection: ContextSelection, store: FileStore) -> Optional[ChatMessage]:
        """Returns the assistant reply, or None when the question is blank."""
        if not question.strip():
            return None

        self.messages.append(ChatMessage(MessageRole.USER, question))
        pending = ChatMessage(MessageRole.ASSISTANT, "", is_loading=True)
        self.messages.append(pending)
        self.is_analyzing = True
        try:
            prompt = self.prepare_prompt(question, selection, store)
            answer = await self.service.analyze(prompt)
        except AnalysisRequestFailure as e:
            logger.error(f"Analysis failed: {e}")
            answer = str(e) or GENERIC_FAILURE_MESSAGE
        except Exception as e:
            logger.exception(f"Unexpected error during analysis: {e}")
            answer = GENERIC_FAILURE_MESSAGE
        finally:
            self.is_analyzing = False

        reply = ChatMessage(MessageRole.ASSISTANT, answer)
        self.messages[self.messages.index(pending)] = reply
        return reply
