"""
Sale Classifier - LLM verdict on whether a conversation closed a sale

Sends the role-tagged window to the configured providers in order: primary
first, then exactly one fallback. If both fail (transport or parse error), or
none is configured, the verdict is the default "no sale".

The verdict is advisory. SafetyFilter decides whether it may reach the ledger.

Prompt rules enforced on the model:
- Closed only when the customer asked AND the seller explicitly confirmed
- Last message from the customer => false, whatever came before
- Confirmation already given and the customer kept talking => false, so the
  same closing is not recorded twice as the window slides forward
"""
from typing import List, Optional, Sequence

import structlog

from salewatch.classifiers.base import ClassificationProvider
from salewatch.common.errors import ClassificationFailure
from salewatch.common.schemas.sales import ClassificationVerdict, ConversationMessage
from salewatch.domain.detection.context_window import render_transcript

logger = structlog.get_logger()

# Primary + one fallback
MAX_PROVIDER_ATTEMPTS = 2


class SaleClassifier:
    """
    Classification adapter over an ordered provider list.

    Usage:
        classifier = SaleClassifier(build_providers(settings))
        verdict = await classifier.classify_window(window)
    """

    def __init__(self, providers: Sequence[ClassificationProvider], business_description: str = "un negocio de agua en Chile"):
        """
        Initialize classifier.

        Args:
            providers: Ordered providers; only the first two are ever tried
            business_description: Business wording used in the prompt
        """
        self.providers: List[ClassificationProvider] = list(providers)[:MAX_PROVIDER_ATTEMPTS]
        self.business_description = business_description

    async def classify_window(self, window: Sequence[ConversationMessage]) -> ClassificationVerdict:
        return await self.classify_transcript(render_transcript(list(window)))

    async def classify_transcript(self, transcript: str) -> ClassificationVerdict:
        """
        Classify a role-tagged transcript.

        Never raises: every failure degrades to ClassificationVerdict.default().
        """
        if not self.providers:
            logger.warning("classification_skipped", reason="no_providers")
            return ClassificationVerdict.default()

        prompt = self._build_prompt(transcript)
        last_error: Optional[ClassificationFailure] = None

        for attempt, provider in enumerate(self.providers, start=1):
            try:
                verdict = await provider.classify(prompt)
                if attempt > 1:
                    logger.info("classification_fallback_succeeded", provider=provider.name)
                return verdict

            except ClassificationFailure as e:
                last_error = e
                logger.warning("classification_provider_failed",
                               provider=provider.name,
                               attempt=attempt,
                               error=e.reason)

            except Exception as e:
                # Unexpected SDK errors are treated like transport failures
                last_error = ClassificationFailure(getattr(provider, "name", "unknown"), str(e))
                logger.error("classification_provider_error",
                             provider=getattr(provider, "name", "unknown"),
                             attempt=attempt,
                             error=str(e),
                             exc_info=True)

        logger.error("classification_failed",
                     providers=[p.name for p in self.providers],
                     error=last_error.reason if last_error else None)
        return ClassificationVerdict.default()

    def _build_prompt(self, transcript: str) -> str:
        """
        Build the auditor prompt.

        Args:
            transcript: "Vendedor: ..." / "Cliente: ..." lines

        Returns:
            Prompt text ending with the transcript and the JSON cue
        """
        return f"""Actúa como un Auditor de Ventas Estricto para {self.business_description}.
Tu misión es determinar si una venta se CERRÓ con éxito basándote en la conversación.

REGLAS DE CIERRE:
- Una venta SOLO es exitosa (esVenta: true) si el Cliente solicita Y el Vendedor responde CONFIRMANDO (ej: ok, voy, listo, perfecto).
- Si el ÚLTIMO mensaje de la conversación es del CLIENTE, "esVenta" DEBE ser false. No importa lo que se haya dicho antes.
- Si el vendedor ya confirmó antes y el cliente vuelve a hablar (ej: "gracias", "le espero"), la venta ya fue procesada: responde "esVenta": false. Solo devuelve true en el momento preciso en que el vendedor confirma.
- Ubicación: no la inventes. Si no hay dirección clara en la conversación, deja "ubicacion" vacío.
- Cantidad: número de unidades pedidas; si no se menciona, usa 1.

EJEMPLOS:

Contexto:
Cliente: Quiero 1 agua al 1201
Respuesta: {{"esVenta": false, "cantidad": 1, "ubicacion": "1201"}}

Contexto:
Cliente: Quiero 1 agua al 1201
Vendedor: Ok voy
Respuesta: {{"esVenta": true, "cantidad": 1, "ubicacion": "1201"}}

Contexto:
Cliente: Quiero 1 agua al 1201
Vendedor: Ok voy
Cliente: Gracias amable
Respuesta: {{"esVenta": false, "cantidad": 1, "ubicacion": "1201"}}

FORMATO DE SALIDA:
- Responde ÚNICAMENTE con un objeto JSON: {{"esVenta": boolean, "cantidad": number, "ubicacion": string}}
- No añadas texto extra.

Conversación actual:
{transcript}

Respuesta JSON:"""
