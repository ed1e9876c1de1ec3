"""Agent: the public entry point for chat, typed output, embeddings, and media."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from typing import Any, TypeVar

from jsonschema import Draft7Validator
from jsonschema.exceptions import best_match
from pydantic import BaseModel, ValidationError

from parley.config import Environment, ParleyConfig, environment, get_config
from parley.core.errors import (
    IterationLimitError,
    MessageConsolidationError,
    OutputFormatError,
    UnsupportedCapabilityError,
)
from parley.core.types import (
    BatchEmbeddingsResult,
    ChatMessage,
    ChatResult,
    EmbeddingsResult,
    MediaGenerationResult,
    ModelKind,
    Part,
    ProviderCaps,
)
from parley.logs import configure_from_environment
from parley.providers import registry
from parley.providers.base import BaseProvider
from parley.tools.tool import Tool

from .accumulator import MediaResponseAccumulator, ResponseAccumulator
from .executor import ToolExecutor
from .model_string import ModelStringParser
from .orchestrator import OrchestrationPolicy
from .state import StreamingState

logger = logging.getLogger("parley.agent")

T = TypeVar("T")


def check_single_text_part(messages: Sequence[ChatMessage]) -> None:
    """Raise if any message carries more than one text part (a stream-consolidation bug)."""
    for message in messages:
        texts = message.text_parts
        if len(texts) > 1:
            detail = ", ".join(repr(p.text) for p in texts)
            logger.error("Message from %s has %d text parts: %s", message.role.value, len(texts), detail)
            raise MessageConsolidationError(
                f"Message contains {len(texts)} text parts but should have at most 1 ({detail}); "
                "streamed text was not consolidated"
            )


class Agent:
    """
    Multi-provider chat agent with automatic tool calling.

    Usage:
        agent = Agent("openai:gpt-4.1-mini", tools=[weather])
        result = await agent.send("What's the weather in Paris?")
        print(result.output)

        async for chunk in agent.send_stream("Tell me a story"):
            print(chunk.output, end="")
    """

    # Shared with parley.config; keys set here reach API keys and PARLEY_LOG_LEVEL:
    #     Agent.environment["OPENAI_API_KEY"] = "sk-..."
    #     Agent.environment.use_agent_environment_only = True
    environment: Environment = environment

    def __init__(
        self,
        model: str | BaseProvider,
        *,
        tools: Sequence[Tool] | None = None,
        temperature: float | None = None,
        enable_thinking: bool = False,
        display_name: str | None = None,
        chat_model_options: Mapping[str, Any] | None = None,
        embeddings_model_options: Mapping[str, Any] | None = None,
        media_model_options: Mapping[str, Any] | None = None,
        config: ParleyConfig | None = None,
        max_iterations: int | None = None,
    ):
        configure_from_environment()
        self.config = config or get_config()

        if isinstance(model, BaseProvider):
            self._provider = model
            self._provider_name = model.name
            self._chat_model_name: str | None = None
            self._embeddings_model_name: str | None = None
            self._media_model_name: str | None = None
        else:
            parsed = ModelStringParser.parse(self.config.resolve_alias(model))
            self._provider = registry.get_provider(parsed.provider_name, self.config)
            # Keep the name as given; it may be an alias
            self._provider_name = parsed.provider_name
            self._chat_model_name = parsed.chat_model_name
            self._embeddings_model_name = parsed.embeddings_model_name
            self._media_model_name = parsed.media_model_name

        if enable_thinking and not self._provider.supports(ProviderCaps.THINKING):
            raise UnsupportedCapabilityError(self._provider.name, "thinking")

        self.tools = list(tools or [])
        self.temperature = temperature
        self.enable_thinking = enable_thinking
        self.chat_model_options = dict(chat_model_options or {})
        self.embeddings_model_options = dict(embeddings_model_options or {})
        self.media_model_options = dict(media_model_options or {})
        self.max_iterations = max_iterations or self.config.agent_max_iterations
        self._display_name = display_name
        self._policy = OrchestrationPolicy.from_caps(
            self._provider.caps,
            ToolExecutor(self.config.tool_timeout_seconds, self.config.max_concurrent_tools),
        )
        logger.info("Created agent for %s with %d tools (temperature=%s, thinking=%s)",
                    self.model, len(self.tools), temperature, enable_thinking)

    @classmethod
    def for_provider(
        cls,
        provider: BaseProvider,
        *,
        chat_model_name: str | None = None,
        embeddings_model_name: str | None = None,
        media_model_name: str | None = None,
        **kwargs: Any,
    ) -> Agent:
        """Build an agent around an existing provider instance."""
        agent = cls(provider, **kwargs)
        agent._chat_model_name = chat_model_name
        agent._embeddings_model_name = embeddings_model_name
        agent._media_model_name = media_model_name
        return agent

    # --- Names ---

    @property
    def provider(self) -> BaseProvider:
        return self._provider

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def chat_model_name(self) -> str | None:
        return self._chat_model_name

    @property
    def embeddings_model_name(self) -> str | None:
        return self._embeddings_model_name

    @property
    def media_model_name(self) -> str | None:
        return self._media_model_name

    @property
    def model(self) -> str:
        """Fully qualified model string, with provider defaults filled in."""
        defaults = self._provider.default_model_names
        return str(ModelStringParser(
            self._provider_name,
            self._chat_model_name or defaults.get(ModelKind.CHAT),
            self._embeddings_model_name or defaults.get(ModelKind.EMBEDDINGS),
            self._media_model_name or defaults.get(ModelKind.MEDIA),
        ))

    @property
    def display_name(self) -> str:
        return self._display_name or self._provider.display_name

    # --- Chat ---

    async def send(
        self,
        prompt: str,
        *,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
        output_schema: dict[str, Any] | None = None,
    ) -> ChatResult[str]:
        """Run a whole turn and return the aggregate result."""
        logger.info("Sending prompt with %d history messages", len(history))
        accumulator = ResponseAccumulator(typed=output_schema is not None)
        async for chunk in self.send_stream(prompt, history=history, attachments=attachments,
                                            output_schema=output_schema):
            accumulator.add(chunk)
        result = accumulator.build_final()
        logger.info("Turn finished with %d new messages, finish reason %s",
                    len(result.messages), result.finish_reason.value)
        return result

    async def send_for(
        self,
        prompt: str,
        *,
        output_schema: dict[str, Any] | None = None,
        output_type: type[BaseModel] | None = None,
        output_from_json: Callable[[Any], T] | None = None,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
    ) -> ChatResult[Any]:
        """
        Run a turn constrained to ``output_schema`` and return the decoded value.

        Pass a pydantic ``output_type`` to get an instance of it (its JSON schema
        is used when ``output_schema`` is omitted), or ``output_from_json`` to
        convert the decoded JSON yourself. Without either, the decoded JSON is
        returned. Raises OutputFormatError when the output is not valid JSON or
        does not match the schema.
        """
        if output_schema is None:
            if output_type is None:
                raise ValueError("send_for needs output_schema or output_type")
            output_schema = output_type.model_json_schema()

        response = await self.send(prompt, history=history, attachments=attachments, output_schema=output_schema)
        raw = response.output
        if not raw.strip():
            raise OutputFormatError("No JSON output found in response", raw)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise OutputFormatError(f"Response is not valid JSON: {exc}", raw) from exc

        error = best_match(Draft7Validator(output_schema).iter_errors(data))
        if error is not None:
            where = "/".join(str(p) for p in error.absolute_path) or "<root>"
            raise OutputFormatError(f"Response does not match schema at {where}: {error.message}", raw)

        output: Any = data
        try:
            if output_type is not None:
                output = output_type.model_validate(data)
            if output_from_json is not None:
                output = output_from_json(output)
        except ValidationError as exc:
            raise OutputFormatError(f"Response does not match {output_type.__name__}: {exc}", raw) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise OutputFormatError(f"Could not convert response: {exc}", raw) from exc

        return ChatResult(
            output=output,
            id=response.id,
            messages=response.messages,
            finish_reason=response.finish_reason,
            metadata=response.metadata,
            thinking=response.thinking,
            usage=response.usage,
        )

    async def send_stream(
        self,
        prompt: str,
        *,
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
        output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[ChatResult[str]]:
        """
        Stream one turn.

        The first chunk carries the new user message. Text deltas follow as
        they arrive, each new model or tool-result message comes in a chunk of
        its own, and the last chunk is a usage-only terminal signal.
        """
        logger.info("Starting stream with %d history messages", len(history))
        orchestrator, tools = self._policy.resolve(output_schema, self.tools)
        model = self._provider.create_chat_model(
            name=self._chat_model_name,
            temperature=self.temperature,
            enable_thinking=self.enable_thinking,
            options=self.chat_model_options,
        )
        try:
            user_message = ChatMessage.user(prompt, parts=attachments)
            check_single_text_part(history)
            check_single_text_part([user_message])

            state = StreamingState.create([*history, user_message], tools)
            yield ChatResult(output="", messages=[user_message])

            orchestrator.initialize(state)
            try:
                iterations = 0
                while not state.done:
                    if iterations >= self.max_iterations:
                        raise IterationLimitError(self.max_iterations)
                    iterations += 1
                    async for result in orchestrator.process_iteration(model, state, output_schema=output_schema):
                        chunk_id = state.last_result.id
                        if result.messages:
                            check_single_text_part(result.messages)
                            yield ChatResult(output="", id=chunk_id, messages=list(result.messages),
                                             finish_reason=result.finish_reason, metadata=result.metadata,
                                             thinking=result.thinking, usage=result.usage)
                        elif result.output or result.metadata or result.thinking:
                            yield ChatResult(output=result.output, id=chunk_id, finish_reason=result.finish_reason,
                                             metadata=result.metadata, thinking=result.thinking, usage=result.usage)
                        elif result.usage is not None or not result.should_continue:
                            yield ChatResult(output="", id=chunk_id, finish_reason=result.finish_reason,
                                             usage=result.usage)
                        if not result.should_continue:
                            state.complete()
            finally:
                orchestrator.finalize(state)
        finally:
            await model.aclose()

    # --- Media ---

    async def generate_media(
        self,
        prompt: str,
        *,
        mime_types: Sequence[str],
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
        options: Mapping[str, Any] | None = None,
        output_schema: dict[str, Any] | None = None,
    ) -> MediaGenerationResult:
        if not mime_types:
            raise ValueError("At least one MIME type must be provided")
        logger.info("Generating media (%s) with %d history messages", ", ".join(mime_types), len(history))
        accumulator = MediaResponseAccumulator()
        async for chunk in self.generate_media_stream(prompt, mime_types=mime_types, history=history,
                                                      attachments=attachments, options=options,
                                                      output_schema=output_schema):
            accumulator.add(chunk)
        result = accumulator.build_final()
        logger.info("Media generation finished with %d assets and %d links", len(result.assets), len(result.links))
        return result

    async def generate_media_stream(
        self,
        prompt: str,
        *,
        mime_types: Sequence[str],
        history: Sequence[ChatMessage] = (),
        attachments: Sequence[Part] = (),
        options: Mapping[str, Any] | None = None,
        output_schema: dict[str, Any] | None = None,
    ) -> AsyncIterator[MediaGenerationResult]:
        if not mime_types:
            raise ValueError("At least one MIME type must be provided")
        check_single_text_part(history)
        user_message = ChatMessage.user(prompt, parts=attachments)
        check_single_text_part([user_message])

        model = self._provider.create_media_model(name=self._media_model_name, options=self.media_model_options)
        try:
            yield MediaGenerationResult(messages=[user_message])
            async for chunk in model.generate_media_stream(
                prompt,
                mime_types=mime_types,
                history=history,
                attachments=attachments,
                options=options if options is not None else self.media_model_options,
                output_schema=output_schema,
            ):
                if chunk.messages:
                    check_single_text_part(chunk.messages)
                yield chunk
        finally:
            await model.aclose()

    # --- Embeddings ---

    async def embed_query(self, query: str) -> EmbeddingsResult:
        async with self._provider.create_embeddings_model(
            name=self._embeddings_model_name, options=self.embeddings_model_options,
        ) as model:
            return await model.embed_query(query)

    async def embed_documents(self, texts: Sequence[str]) -> BatchEmbeddingsResult:
        async with self._provider.create_embeddings_model(
            name=self._embeddings_model_name, options=self.embeddings_model_options,
        ) as model:
            return await model.embed_documents(texts)

    # --- Providers ---

    @staticmethod
    def get_provider(name: str, config: ParleyConfig | None = None) -> BaseProvider:
        return registry.get_provider(name, config)

    @staticmethod
    def all_providers(config: ParleyConfig | None = None) -> list[BaseProvider]:
        return registry.all_providers(config)

    def __repr__(self) -> str:
        return f"Agent(model={self.model!r})"
