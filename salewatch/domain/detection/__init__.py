"""
Sale Detection - from chat messages to ledger records

Live flow:
1. TriggerClassifier: cheap keyword / structure pre-filter
2. ContextWindowBuilder: last N speaker-tagged messages (voice notes transcribed)
3. SaleClassifier: LLM verdict, primary provider + one fallback
4. SafetyFilter: seller must confirm last, trigger must be the seller
5. SalesLedger.append

RetroactiveScanner replays 2-5 over past conversations in manual mode.
"""
from salewatch.domain.detection.context_window import ContextWindowBuilder, render_transcript
from salewatch.domain.detection.pipeline import (
    OutcomeStatus,
    PipelineResult,
    SaleDetectionPipeline,
    StageOutcome,
)
from salewatch.domain.detection.retroactive_scanner import (
    RetroactiveScanner,
    ScanReport,
    recent_private_conversations,
)
from salewatch.domain.detection.safety_filter import FilterDecision, SafetyFilter, TriggerMode
from salewatch.domain.detection.sale_classifier import SaleClassifier
from salewatch.domain.detection.transcriber import WhisperTranscriber
from salewatch.domain.detection.trigger_classifier import TriggerClassifier

__all__ = [
    'ContextWindowBuilder',
    'render_transcript',
    'OutcomeStatus',
    'PipelineResult',
    'SaleDetectionPipeline',
    'StageOutcome',
    'RetroactiveScanner',
    'ScanReport',
    'recent_private_conversations',
    'FilterDecision',
    'SafetyFilter',
    'TriggerMode',
    'SaleClassifier',
    'WhisperTranscriber',
    'TriggerClassifier',
]
