"""
Sale classification providers

Each provider sends the auditor prompt to one LLM backend and parses the
{esVenta, cantidad, ubicacion} contract object.
"""
from salewatch.classifiers.base import ClassificationProvider, VerdictPayload, parse_verdict
from salewatch.classifiers.factory import build_providers

__all__ = [
    'ClassificationProvider',
    'VerdictPayload',
    'parse_verdict',
    'build_providers',
]
