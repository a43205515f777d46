"""
Classification Provider Factory

Builds the ordered provider list used by SaleClassifier.

Strategy:
- Walk CLASSIFIER_PROVIDERS in order (default: openai, groq, anthropic)
- Skip providers without an API key
- Keep at most two: the primary and exactly one fallback
"""
from typing import List

import structlog

from salewatch.classifiers.base import ClassificationProvider
from salewatch.common.config import Settings

logger = structlog.get_logger()

MAX_PROVIDERS = 2


def build_providers(settings: Settings) -> List[ClassificationProvider]:
    """
    Create providers from settings.

    Returns:
        Ordered list (possibly empty) of at most MAX_PROVIDERS providers
    """
    providers: List[ClassificationProvider] = []

    for name in settings.classifier_provider_order:
        if len(providers) >= MAX_PROVIDERS:
            break

        if name == "openai" and settings.openai_api_key:
            from salewatch.classifiers.provider_openai import OpenAICompatibleProvider
            providers.append(OpenAICompatibleProvider(
                name="openai",
                api_key=settings.openai_api_key,
                model=settings.openai_model,
            ))
        elif name == "groq" and settings.groq_api_key:
            from salewatch.classifiers.provider_openai import OpenAICompatibleProvider
            providers.append(OpenAICompatibleProvider(
                name="groq",
                api_key=settings.groq_api_key,
                model=settings.groq_model,
                base_url=settings.groq_base_url,
            ))
        elif name == "anthropic" and settings.anthropic_api_key:
            from salewatch.classifiers.provider_anthropic import AnthropicProvider
            providers.append(AnthropicProvider(
                api_key=settings.anthropic_api_key,
                model=settings.anthropic_model,
            ))
        else:
            logger.debug("classification_provider_skipped", provider=name, reason="no_api_key")

    if not providers:
        logger.warning("no_classification_providers",
                       message="No classifier API key set, every verdict will be 'no sale'")
    else:
        logger.info("classification_providers_ready", order=[p.name for p in providers])

    return providers
