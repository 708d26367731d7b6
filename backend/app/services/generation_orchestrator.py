"""Generation orchestrator: assistant session with a completion fallback.

The primary path drives one assistant run as an explicit state machine:

    CREATED -> SESSION_OPEN -> MESSAGE_SENT -> RUNNING -> COMPLETED
                                                       -> FAILED
                                                       -> TIMED_OUT

RUNNING polls the run status every ``poll_interval`` seconds for at most
``max_poll_attempts`` polls. The sleep coroutine is injected so tests can
simulate the whole poll limit without waiting.

If the assistant path fails, times out or hits a transport error, the same
prompt is sent once through the stateless chat completion endpoint. Only
when that also fails does generation raise GenerationUnavailableError.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum

from app.core.logging import autoblog_logger, get_logger, openai_logger
from app.integrations.openai_assistant import OpenAIClient, OpenAIError
from app.services.errors import (
    GenerationFailedError,
    GenerationTimeoutError,
    GenerationUnavailableError,
)

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an experienced content writer for New Age Fotografie, a family and "
    "newborn photography studio in Vienna. Write warm, personal, SEO-optimized blog "
    "posts that match the described photos exactly and follow the requested "
    "deliverable format."
)

PATH_ASSISTANT = "assistant"
PATH_COMPLETION = "completion"


class GenerationState(str, Enum):
    """States of one assistant generation attempt."""

    CREATED = "created"
    SESSION_OPEN = "session_open"
    MESSAGE_SENT = "message_sent"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


TERMINAL_STATES = frozenset(
    {GenerationState.COMPLETED, GenerationState.FAILED, GenerationState.TIMED_OUT}
)

ALLOWED_TRANSITIONS: dict[GenerationState, frozenset[GenerationState]] = {
    GenerationState.CREATED: frozenset({GenerationState.SESSION_OPEN, GenerationState.FAILED}),
    GenerationState.SESSION_OPEN: frozenset({GenerationState.MESSAGE_SENT, GenerationState.FAILED}),
    GenerationState.MESSAGE_SENT: frozenset({GenerationState.RUNNING, GenerationState.FAILED}),
    GenerationState.RUNNING: frozenset(
        {
            GenerationState.RUNNING,
            GenerationState.COMPLETED,
            GenerationState.FAILED,
            GenerationState.TIMED_OUT,
        }
    ),
    GenerationState.COMPLETED: frozenset(),
    GenerationState.FAILED: frozenset(),
    GenerationState.TIMED_OUT: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised on a state change the state machine does not allow."""

    def __init__(self, current: GenerationState, target: GenerationState):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition: {current.value} -> {target.value}")


@dataclass
class GenerationRequest:
    """Outbound unit of one generation."""

    prompt: str
    image_urls: list[str] = field(default_factory=list)
    thread_id: str | None = None


@dataclass
class GenerationResult:
    """Raw generated text and how it was produced."""

    text: str
    path: str
    thread_id: str | None = None
    run_id: str | None = None
    poll_attempts: int = 0


@dataclass
class GenerationAttempt:
    """State of one assistant run attempt."""

    state: GenerationState = GenerationState.CREATED
    thread_id: str | None = None
    run_id: str | None = None
    poll_attempts: int = 0
    history: list[GenerationState] = field(
        default_factory=lambda: [GenerationState.CREATED]
    )

    def transition(self, target: GenerationState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state, target)
        if target != self.state:
            logger.debug(
                "Generation state changed",
                extra={
                    "from_state": self.state.value,
                    "to_state": target.value,
                    "thread_id": self.thread_id,
                    "run_id": self.run_id,
                },
            )
        self.state = target
        self.history.append(target)


SleepFunc = Callable[[float], Awaitable[None]]


class GenerationOrchestrator:
    """Produces raw article text from a prompt."""

    def __init__(
        self,
        client: OpenAIClient,
        assistant_id: str | None,
        poll_interval: float = 2.0,
        max_poll_attempts: int = 30,
        sleep: SleepFunc = asyncio.sleep,
        fallback_temperature: float = 0.7,
    ) -> None:
        self._client = client
        self._assistant_id = assistant_id
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._sleep = sleep
        self._fallback_temperature = fallback_temperature

    async def run_assistant(
        self, request: GenerationRequest, attempt: GenerationAttempt | None = None
    ) -> GenerationResult:
        """Drive one assistant run to a terminal state.

        Raises:
            GenerationFailedError: Run ended in a failure state or returned no text.
            GenerationTimeoutError: Poll limit exhausted.
            OpenAIError: Transport error on any call.
        """
        if not self._assistant_id:
            raise GenerationFailedError("No assistant configured")

        attempt = attempt or GenerationAttempt()
        try:
            thread_id = await self._client.create_thread()
            attempt.thread_id = thread_id
            request.thread_id = thread_id
            attempt.transition(GenerationState.SESSION_OPEN)

            await self._client.add_message(thread_id, request.prompt, request.image_urls or None)
            attempt.transition(GenerationState.MESSAGE_SENT)

            run = await self._client.create_run(thread_id, self._assistant_id)
            attempt.run_id = run.id
            attempt.transition(GenerationState.RUNNING)
            logger.info(
                "Assistant run started",
                extra={"thread_id": thread_id, "run_id": run.id},
            )

            status = run
            while not status.is_completed:
                if status.is_failed:
                    attempt.transition(GenerationState.FAILED)
                    raise GenerationFailedError(status.last_error or status.status)
                if attempt.poll_attempts >= self._max_poll_attempts:
                    attempt.transition(GenerationState.TIMED_OUT)
                    raise GenerationTimeoutError(attempt.poll_attempts)

                await self._sleep(self._poll_interval)
                attempt.poll_attempts += 1
                status = await self._client.get_run(thread_id, run.id)
                openai_logger.run_poll(
                    thread_id, run.id, status.status, attempt.poll_attempts, self._max_poll_attempts
                )
                attempt.transition(GenerationState.RUNNING)

            messages = await self._client.list_messages(thread_id)
            text = next(
                (m.text for m in messages if m.role == "assistant" and m.text.strip()), ""
            )
            if not text:
                attempt.transition(GenerationState.FAILED)
                raise GenerationFailedError("Assistant returned no text")

            attempt.transition(GenerationState.COMPLETED)
        except OpenAIError:
            if attempt.state not in TERMINAL_STATES:
                attempt.transition(GenerationState.FAILED)
            raise

        return GenerationResult(
            text=text,
            path=PATH_ASSISTANT,
            thread_id=attempt.thread_id,
            run_id=attempt.run_id,
            poll_attempts=attempt.poll_attempts,
        )

    async def _system_prompt(self) -> str:
        if not self._assistant_id:
            return DEFAULT_SYSTEM_PROMPT
        try:
            instructions = await self._client.get_assistant_instructions(self._assistant_id)
        except OpenAIError as e:
            logger.warning(
                "Could not load assistant instructions, using default system prompt",
                extra={"error": str(e)},
            )
            return DEFAULT_SYSTEM_PROMPT
        return instructions.strip() or DEFAULT_SYSTEM_PROMPT

    async def run_completion(self, request: GenerationRequest) -> GenerationResult:
        """Single stateless prompt/response exchange.

        Raises:
            GenerationUnavailableError: Call failed or returned no text.
        """
        system_prompt = await self._system_prompt()
        result = await self._client.complete(
            request.prompt,
            system_prompt=system_prompt,
            temperature=self._fallback_temperature,
        )
        if not result.success or not result.text or not result.text.strip():
            raise GenerationUnavailableError(result.error or "Completion returned no text")
        return GenerationResult(text=result.text, path=PATH_COMPLETION)

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Assistant path first, completion path on failure.

        Raises:
            GenerationUnavailableError: Both paths failed.
        """
        start_time = time.monotonic()
        autoblog_logger.stage_start("generate", assistant_configured=bool(self._assistant_id))

        result: GenerationResult | None = None
        if self._assistant_id:
            try:
                result = await self.run_assistant(request)
            except (GenerationFailedError, GenerationTimeoutError, OpenAIError) as e:
                openai_logger.graceful_fallback("assistant_run", f"{type(e).__name__}: {e}")
        else:
            logger.info("No assistant configured, using completion path")

        if result is None:
            try:
                result = await self.run_completion(request)
            except GenerationUnavailableError as e:
                autoblog_logger.run_failed(type(e).__name__, str(e))
                raise

        autoblog_logger.stage_complete(
            "generate",
            (time.monotonic() - start_time) * 1000,
            generation_path=result.path,
            poll_attempts=result.poll_attempts,
            text_length=len(result.text),
        )
        return result
