"""Prometheus metrics for approvals, duplicates, distributions and reconciliation"""

from decimal import Decimal

from prometheus_client import Counter, Histogram, Gauge

# Approval state machine
approval_counter = Counter(
    "ledger_transaction_approvals_total",
    "Transactions approved",
    ["source"],  # manual | bank_import
)

rejection_counter = Counter(
    "ledger_transaction_rejections_total",
    "Pending transactions rejected",
)

reversal_counter = Counter(
    "ledger_transaction_reversals_total",
    "Approved transactions reversed back to pending",
)

# Duplicate detection
duplicate_flag_counter = Counter(
    "ledger_duplicates_flagged_total",
    "Bank imports flagged as likely duplicates",
    ["strength"],  # strong | weak
)

duplicate_resolution_counter = Counter(
    "ledger_duplicate_resolutions_total",
    "Duplicate resolutions",
    ["action"],  # merge | keep_both | delete_bank
)

import_counter = Counter(
    "ledger_bank_imports_total",
    "Bank records processed by import",
    ["outcome"],  # created | flagged | skipped
)

# Recurring income
distribution_counter = Counter(
    "ledger_recurring_distributions_total",
    "Recurring income distributions processed",
    ["outcome"],  # surplus | deficit | exact
)

# Reconciliation
reconciliation_difference_gauge = Gauge(
    "ledger_reconciliation_difference",
    "Last computed bank minus envelope balance",
)

# Failures
operation_failure_counter = Counter(
    "ledger_operation_failures_total",
    "Ledger operations rejected with a domain error",
    ["error"],
)

bank_feed_failures_counter = Counter(
    "bank_feed_failures_total",
    "Failed bank feed calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_distribution(surplus: Decimal) -> None:
    """Bucket distributions by whether more or less than planned was received"""
    if surplus > 0:
        outcome = "surplus"
    elif surplus < 0:
        outcome = "deficit"
    else:
        outcome = "exact"
    distribution_counter.labels(outcome=outcome).inc()


def record_reconciliation(difference: Decimal) -> None:
    reconciliation_difference_gauge.set(float(difference))
