from typing import Optional, Protocol

from core.exceptions import AIServiceError, EvaluationError
from core.logger import logger
from services.ai_service import AIService


JUDGE_PROMPT = """You are an educational AI.
Check the student's answer below against the expected answer and determine if it is correct.
Give a simple response with just one of these: "true" or "false".
Question: {question}
Expected Answer: {expected}
Student's Answer: {submitted}"""


class TheoryJudge(Protocol):
    async def evaluate(self, question_text: str, expected_answer: str, submitted_text: str) -> str:
        """Return the judge's free-text verdict."""
        ...


class AIJudge:
    """Theory judge backed by the Groq chat model."""

    def __init__(self, ai_service: Optional[AIService] = None):
        self.ai_service = ai_service or AIService()

    async def evaluate(self, question_text: str, expected_answer: str, submitted_text: str) -> str:
        prompt = JUDGE_PROMPT.format(
            question=question_text,
            expected=expected_answer,
            submitted=submitted_text
        )
        try:
            verdict = await self.ai_service.complete(
                [{"role": "user", "content": prompt}],
                temperature=0.0,
                max_tokens=16
            )
        except AIServiceError as e:
            raise EvaluationError(str(e)) from e

        logger.info("Judge verdict received", verdict=verdict[:100])
        return verdict
