"""
Classification Provider Base Interface

Defines the contract for all sale-classification providers (OpenAI, Groq,
Anthropic). This allows swapping LLM backends via configuration without
changing calling code.

Response contract (legacy field names kept for compatibility):
    {"esVenta": boolean, "cantidad": number, "ubicacion": string}
Anything else is a parse failure; nothing is partially trusted.
"""
import json
import math
from typing import Protocol, Union

from pydantic import BaseModel, ConfigDict, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError, validator

from salewatch.common.errors import ClassificationFailure
from salewatch.common.schemas.sales import ClassificationVerdict

# Largest order a verdict may carry; anything above is treated as a bad response
MAX_VERDICT_QUANTITY = 1000


class VerdictPayload(BaseModel):
    """Exact JSON object the classifier must return"""
    model_config = ConfigDict(extra="forbid")

    esVenta: StrictBool
    cantidad: Union[StrictInt, StrictFloat]
    ubicacion: StrictStr

    @validator("cantidad")
    def validate_whole_quantity(cls, v):
        """Quantities are whole, non-negative units of a plausible size"""
        if not math.isfinite(v) or v < 0:
            raise ValueError(f"cantidad must be a finite number >= 0, got {v}")
        if v > MAX_VERDICT_QUANTITY:
            raise ValueError(f"cantidad must be <= {MAX_VERDICT_QUANTITY}, got {v}")
        if float(v) != int(v):
            raise ValueError(f"cantidad must be a whole number, got {v}")
        return v

    def to_verdict(self) -> ClassificationVerdict:
        return ClassificationVerdict(
            is_sale=self.esVenta,
            quantity=int(self.cantidad),
            location=self.ubicacion.strip(),
        )


def parse_verdict(provider: str, response_text: str) -> ClassificationVerdict:
    """
    Parse a raw model response into a verdict.

    Markdown code fences are stripped; everything else must be the exact
    contract object.

    Raises:
        ClassificationFailure: Non-JSON output or wrong shape
    """
    if response_text is None:
        raise ClassificationFailure(provider, "empty response")

    cleaned = response_text.strip()
    if "```json" in cleaned:
        cleaned = cleaned.split("```json")[1].split("```")[0].strip()
    elif "```" in cleaned:
        cleaned = cleaned.split("```")[1].split("```")[0].strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ClassificationFailure(provider, f"response is not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ClassificationFailure(provider, f"expected a JSON object, got {type(data).__name__}")

    try:
        return VerdictPayload(**data).to_verdict()
    except (ValidationError, TypeError) as e:
        raise ClassificationFailure(provider, f"response does not match verdict schema: {e}") from e


class ClassificationProvider(Protocol):
    """
    Protocol for sale-classification providers.

    All providers must implement this interface to be compatible with the
    provider factory and the SaleClassifier adapter.
    """

    name: str

    async def classify(self, prompt: str) -> ClassificationVerdict:
        """
        Send the fully rendered prompt and parse the verdict.

        Args:
            prompt: Auditor prompt with the role-tagged transcript embedded

        Returns:
            ClassificationVerdict parsed from the contract object

        Raises:
            ClassificationFailure: Transport error or unparseable response
        """
        ...
