"""
Prometheus counters for the detection pipeline
"""
from prometheus_client import Counter

TRIGGER_EVALUATIONS = Counter(
    "salewatch_trigger_evaluations_total",
    "Messages evaluated by the detection pipeline, by final outcome",
    ["outcome"],
)

CLASSIFIER_CALLS = Counter(
    "salewatch_classifier_calls_total",
    "Classification provider calls, by provider and result",
    ["provider", "result"],
)

SALES_RECORDED = Counter(
    "salewatch_sales_recorded_total",
    "Sale records appended to the ledger, by source",
    ["source"],
)
