"""
Anthropic Classification Provider

Claude has no JSON response mode; the prompt asks for the bare object and the
shared parser strips code fences if the model adds them.
"""
from typing import Optional

import anthropic
import structlog

from salewatch.classifiers.base import parse_verdict
from salewatch.common.errors import ClassificationFailure
from salewatch.common.metrics import CLASSIFIER_CALLS
from salewatch.common.schemas.sales import ClassificationVerdict

logger = structlog.get_logger()


class AnthropicProvider:
    """Claude messages API provider"""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-5",
        client: Optional[anthropic.AsyncAnthropic] = None,
    ):
        self.name = "anthropic"
        self.model = model
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)
        logger.info("classification_provider_initialized", provider=self.name, model=model)

    async def classify(self, prompt: str) -> ClassificationVerdict:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=256,
                temperature=0.0,
                messages=[
                    {
                        "role": "user",
                        "content": prompt
                    }
                ]
            )
        except anthropic.AnthropicError as e:
            CLASSIFIER_CALLS.labels(provider=self.name, result="transport_error").inc()
            raise ClassificationFailure(self.name, f"request failed: {e}") from e

        text_blocks = [block.text for block in response.content if getattr(block, "type", None) == "text"]
        if not text_blocks:
            CLASSIFIER_CALLS.labels(provider=self.name, result="parse_error").inc()
            raise ClassificationFailure(self.name, "response has no text content")

        try:
            verdict = parse_verdict(self.name, text_blocks[0])
        except ClassificationFailure:
            CLASSIFIER_CALLS.labels(provider=self.name, result="parse_error").inc()
            raise

        CLASSIFIER_CALLS.labels(provider=self.name, result="ok").inc()
        logger.info("classification_response",
                    provider=self.name,
                    model=self.model,
                    input_tokens=response.usage.input_tokens,
                    output_tokens=response.usage.output_tokens,
                    is_sale=verdict.is_sale,
                    quantity=verdict.quantity)
        return verdict
