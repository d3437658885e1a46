import httpx
from typing import List, Dict, Optional
from core.config import settings
from core.exceptions import AIServiceError
from core.logger import logger


class AIService:
    """Thin client for the Groq chat-completions API."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.GROQ_API_KEY
        self.model = settings.GROQ_MODEL
        self.base_url = settings.GROQ_BASE_URL
        self.timeout = settings.AI_REQUEST_TIMEOUT_SECONDS
        # Injected in tests (httpx.MockTransport)
        self.transport = transport

    def _log_rate_limits(self, headers: httpx.Headers):
        """Extract and log Groq rate limit information."""
        remaining_requests = headers.get("x-ratelimit-remaining-requests")
        remaining_tokens = headers.get("x-ratelimit-remaining-tokens")

        if remaining_requests or remaining_tokens:
            logger.info(
                "Groq rate limits",
                rem_req=remaining_requests,
                rem_tok=remaining_tokens,
                reset_req=headers.get("x-ratelimit-reset-requests"),
                reset_tok=headers.get("x-ratelimit-reset-tokens")
            )

    async def complete(self, messages: List[Dict[str, str]], temperature: float = 0.0,
                       max_tokens: int = 512) -> str:
        """
        Send a chat completion request and return the assistant's text.

        Raises AIServiceError for missing configuration, transport failures,
        non-200 responses and malformed payloads. Never retries.
        """
        if not self.api_key:
            raise AIServiceError("GROQ_API_KEY is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.base_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "model": self.model,
                        "messages": messages,
                        "temperature": temperature,
                        "max_completion_tokens": max_tokens
                    }
                )
        except httpx.HTTPError as e:
            logger.error("Groq request failed", error=str(e))
            raise AIServiceError(f"Request error: {e}") from e

        self._log_rate_limits(response.headers)

        if response.status_code != 200:
            logger.error("Groq API error", status=response.status_code, error=response.text[:500])
            raise AIServiceError(f"API error: {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("Malformed Groq response", body=response.text[:500])
            raise AIServiceError("Malformed response from AI provider") from e

        if not isinstance(content, str):
            raise AIServiceError("AI provider returned no text")
        return content

    async def explain_answer(self, question: str, options: Optional[List[str]], correct_answer: str,
                             selected_answer: str, is_correct: bool) -> Optional[str]:
        """
        Educational commentary on an already graded answer.

        Display only: any failure is logged and turned into None so the caller's
        flow is never affected.
        """
        system_prompt = (
            "You are a patient tutor. Explain in at most five sentences why the correct "
            "answer to the question is right, then comment on the student's choice."
        )
        lines = [f"Question: {question}"]
        if options:
            lines.append("Options: " + "; ".join(options))
        lines.append(f"Correct answer: {correct_answer}")
        lines.append(f"Student's answer: {selected_answer}")
        lines.append("The student was " + ("correct." if is_correct else "incorrect."))

        try:
            return await self.complete(
                [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": "\n".join(lines)}
                ],
                temperature=0.5,
                max_tokens=600
            )
        except Exception as e:
            logger.warning("Explanation unavailable", error=str(e))
            return None
