"""Completion provider used by the chat relay."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Protocol

import openai

from chat_relay.errors import ProviderError
from chat_relay.logging import get_logger

log = get_logger("chat_relay.provider")


class CompletionProvider(Protocol):
    """Opaque text-completion capability."""

    @property
    def model(self) -> str: ...

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Mapping[str, str]],
    ) -> str: ...

    async def close(self) -> None: ...


class OpenAIProvider:
    """Chat completions through the OpenAI API."""

    def __init__(
        self,
        api_key: str | None,
        model: str,
        client: openai.AsyncOpenAI | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            api_key: OpenAI API key.  Without one (and without an explicit
                client) every call fails with ProviderError.
            model: Chat completion model name.
            client: Pre-built client, mainly for tests.
        """
        self._model = model
        if client is not None:
            self._client: openai.AsyncOpenAI | None = client
        elif api_key:
            self._client = openai.AsyncOpenAI(api_key=api_key)
        else:
            self._client = None
            log.warning("openai_api_key_missing")
        log.info("openai_provider_initialized", model=model, configured=self._client is not None)

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        system_prompt: str,
        messages: Sequence[Mapping[str, str]],
    ) -> str:
        """Generate the assistant reply for a conversation.

        Args:
            system_prompt: Instructions sent ahead of the conversation.
            messages: Ordered ``{"role", "content"}`` turns ending with the
                new user message.

        Returns:
            The assistant's reply text.

        Raises:
            ProviderError: If the API call fails or returns no text.
        """
        if self._client is None:
            raise ProviderError("OpenAI API key is not configured")

        try:
            completion = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    *({"role": m["role"], "content": m["content"]} for m in messages),
                ],
            )
        except openai.OpenAIError as exc:
            log.error("openai_completion_failed", model=self._model, error=str(exc))
            raise ProviderError(str(exc)) from exc

        if not completion.choices or not completion.choices[0].message.content:
            raise ProviderError("completion provider returned an empty reply")
        return completion.choices[0].message.content

    async def close(self) -> None:
        """Close the OpenAI client."""
        if self._client is not None:
            await self._client.close()
