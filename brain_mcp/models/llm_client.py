"""LLM Client wrapper with retry logic and content validation."""

from __future__ import annotations

import os
import re

from loguru import logger
from openai import AsyncOpenAI

from brain_mcp.utils.errors import LLMException
from brain_mcp.utils.retry import retry_with_backoff

_THINK_BLOCK = re.compile(r"<think>\s*(.*?)\s*</think>\s*(.*)", re.DOTALL | re.IGNORECASE)
_UNCLOSED_THINK = re.compile(r"<think>\s*(.*)", re.DOTALL | re.IGNORECASE)
_QUOTED = re.compile(r'"([^"]{30,})"')

_ANSWER_MARKERS = (
    "Final answer:",
    "The answer is:",
    "In conclusion:",
    "Therefore:",
    "Thus:",
)


class LLMClient:
    """Async wrapper around an OpenAI-compatible chat endpoint.

    This client provides:
    - Automatic retry with exponential backoff on API failures
    - Request timeout passed to the SDK
    - ``<think>`` tag stripping for reasoning models
    - Garbage-response detection

    Example:
        client = LLMClient(model="gpt-4o-mini")
        text = await client.generate_async("Summarize the trade-offs of sharding.")

    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str = "gpt-4o-mini",
        timeout: int = 60,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        default_temperature: float = 0.7,
    ) -> None:
        """Initialize LLM client.

        Args:
            api_key: OpenAI API key. If None, reads from OPENAI_API_KEY env var.
            base_url: Optional custom API base URL for OpenAI-compatible endpoints.
            model: Model name to use for completions.
            timeout: Request timeout in seconds.
            max_retries: Maximum attempts for failed requests.
            retry_base_delay: Initial backoff delay in seconds.
            default_temperature: Sampling temperature used when a call gives none.

        Raises:
            LLMException: If API key is not provided and not in environment.

        """
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise LLMException("OPENAI_API_KEY environment variable not set")

        self.model = model
        self.timeout = timeout
        self.max_retries = max_retries
        self.default_temperature = default_temperature

        self.async_client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url if base_url else None,
            timeout=timeout,
        )
        self._generate_with_retry = retry_with_backoff(
            max_attempts=max_retries,
            base_delay=retry_base_delay,
            retry_on=(LLMException,),
        )(self._generate_once)

        logger.info(f"LLM client initialized with model: {model} (timeout: {timeout}s)")

    async def generate_async(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """Generate text using the LLM.

        Args:
            prompt: User prompt.
            max_tokens: Maximum tokens in response.
            temperature: Sampling temperature, the client default if None.
            system_prompt: Optional system message to set context.

        Returns:
            Generated text, or an empty string when the model returned
            nothing usable.

        Raises:
            LLMException: If generation fails after retries.

        """
        return await self._generate_with_retry(prompt, max_tokens, temperature, system_prompt)

    async def _generate_once(
        self,
        prompt: str,
        max_tokens: int,
        temperature: float | None,
        system_prompt: str | None,
    ) -> str:
        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        logger.debug(f"Sending request to {self.model} with {len(prompt)} char prompt")
        try:
            response = await self.async_client.chat.completions.create(
                model=self.model,
                messages=messages,  # type: ignore[arg-type]
                max_tokens=max_tokens,
                temperature=self.default_temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.error(f"LLM generation failed: {e}")
            raise LLMException(f"Generation failed: {e!s}") from e

        if not response.choices:
            logger.warning(f"No choices in response from {self.model}")
            return ""

        choice = response.choices[0]
        content = choice.message.content or ""
        if content:
            content = self._strip_think_tags(content)
        if content:
            content = self._validate_and_clean_content(content)
        if not content and choice.finish_reason == "length":
            logger.warning("API returned finish_reason='length' with empty content")

        logger.debug(
            f"Response: finish_reason={choice.finish_reason}, content_len={len(content)}"
        )
        return content

    def _extract_answer_from_reasoning(self, reasoning_content: str) -> str:
        """Pull a usable answer out of a raw reasoning trace.

        Looks for an explicit answer marker first, then a long quoted
        passage, and finally falls back to the last paragraph.
        """
        if not reasoning_content:
            return ""

        lowered = reasoning_content.lower()
        for marker in _ANSWER_MARKERS:
            idx = lowered.rfind(marker.lower())
            if idx == -1:
                continue
            answer = reasoning_content[idx + len(marker) :].strip()
            answer = answer.split("\n\n")[0].strip("\"'")
            if len(answer) > 20:
                return answer

        quoted = _QUOTED.findall(reasoning_content)
        if quoted:
            return quoted[-1]

        paragraphs = [p.strip() for p in reasoning_content.split("\n\n") if p.strip()]
        if paragraphs:
            return paragraphs[-1][:500]
        return reasoning_content[:500]

    def _strip_think_tags(self, content: str) -> str:
        """Strip ``<think>...</think>`` and return the answer portion.

        If nothing follows the closing tag (or the tag never closes because
        the model hit its token limit), the answer is extracted from the
        thinking itself.
        """
        match = _THINK_BLOCK.search(content)
        if match:
            thinking, answer = match.group(1).strip(), match.group(2).strip()
            if answer:
                return answer
            if thinking:
                return self._extract_answer_from_reasoning(thinking)

        if "</think>" not in content.lower():
            unclosed = _UNCLOSED_THINK.search(content)
            if unclosed and unclosed.group(1).strip():
                return self._extract_answer_from_reasoning(unclosed.group(1).strip())

        return content

    def _validate_and_clean_content(self, content: str) -> str:
        """Return ``content`` unless it looks like garbage, else an empty string.

        Garbage means fewer than 20% alphanumeric characters, or (for
        content longer than 50 characters) fewer than 5% distinct characters.
        """
        total_chars = len(content)
        if total_chars == 0:
            return ""

        alphanumeric_ratio = sum(1 for c in content if c.isalnum()) / total_chars
        if alphanumeric_ratio < 0.20:
            logger.warning(
                f"Garbage response detected: alphanumeric ratio {alphanumeric_ratio:.2%}. "
                f"Content preview: {content[:100]!r}"
            )
            return ""

        repetition_ratio = len(set(content)) / total_chars
        if total_chars > 50 and repetition_ratio < 0.05:
            logger.warning(
                f"Garbage response detected: repetition ratio {repetition_ratio:.2%}. "
                f"Content preview: {content[:100]!r}"
            )
            return ""

        return content
