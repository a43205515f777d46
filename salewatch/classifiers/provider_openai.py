"""
OpenAI-compatible Classification Provider

Serves both OpenAI (gpt-4o) and Groq (llama-3.3-70b-versatile), which exposes
the same chat-completions API under its own base URL.
"""
from typing import Optional

import structlog
from openai import AsyncOpenAI, OpenAIError

from salewatch.classifiers.base import parse_verdict
from salewatch.common.errors import ClassificationFailure
from salewatch.common.metrics import CLASSIFIER_CALLS
from salewatch.common.schemas.sales import ClassificationVerdict

logger = structlog.get_logger()


class OpenAICompatibleProvider:
    """
    Chat-completions provider in JSON-object response mode.

    Temperature 0 keeps verdicts deterministic for the same window.
    """

    def __init__(
        self,
        name: str,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize provider.

        Args:
            name: Provider label used in logs and metrics ("openai", "groq")
            api_key: API key for the endpoint
            model: Chat model name
            base_url: Alternate OpenAI-compatible endpoint (Groq)
            client: Pre-built client (tests)
        """
        self.name = name
        self.model = model
        self.client = client or AsyncOpenAI(api_key=api_key, base_url=base_url)
        logger.info("classification_provider_initialized", provider=name, model=model)

    async def classify(self, prompt: str) -> ClassificationVerdict:
        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=0,
                response_format={"type": "json_object"},
            )
        except OpenAIError as e:
            CLASSIFIER_CALLS.labels(provider=self.name, result="transport_error").inc()
            raise ClassificationFailure(self.name, f"request failed: {e}") from e

        try:
            content = completion.choices[0].message.content
        except (AttributeError, IndexError) as e:
            CLASSIFIER_CALLS.labels(provider=self.name, result="parse_error").inc()
            raise ClassificationFailure(self.name, "response has no message content") from e

        try:
            verdict = parse_verdict(self.name, content)
        except ClassificationFailure:
            CLASSIFIER_CALLS.labels(provider=self.name, result="parse_error").inc()
            raise

        CLASSIFIER_CALLS.labels(provider=self.name, result="ok").inc()
        logger.info("classification_response",
                    provider=self.name,
                    model=self.model,
                    is_sale=verdict.is_sale,
                    quantity=verdict.quantity,
                    location=verdict.location)
        return verdict
