# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Exports account gateway metrics in Prometheus format.

Metrics:
- Validations by result and rejection reason
- Prefund settlements by outcome, settled amount
- Forwarded calls by outcome
- Unauthorized entry point calls
- Current nonce and balance of the served account
"""

from prometheus_client import Counter, Gauge, CollectorRegistry

# Create registry for metrics
metrics_registry = CollectorRegistry()

# ═══════════════════════════════════════════════════════════════════
# VALIDATION METRICS
# ═══════════════════════════════════════════════════════════════════

validations_total = Counter(
    'opgate_validations_total',
    'Operations validated, by result',
    ['result', 'reason'],
    registry=metrics_registry
)

unauthorized_calls_total = Counter(
    'opgate_unauthorized_calls_total',
    'Entry point calls rejected because of the caller identity',
    ['entry_point'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# SETTLEMENT METRICS
# ═══════════════════════════════════════════════════════════════════

settlements_total = Counter(
    'opgate_prefund_settlements_total',
    'Prefund settlement attempts, by outcome',
    ['outcome'],
    registry=metrics_registry
)

settled_amount_total = Counter(
    'opgate_prefund_settled_amount_total',
    'Total native value transferred to the coordinator as prefund',
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# EXECUTION METRICS
# ═══════════════════════════════════════════════════════════════════

executions_total = Counter(
    'opgate_executions_total',
    'Forwarded calls, by outcome',
    ['outcome'],
    registry=metrics_registry
)

# ═══════════════════════════════════════════════════════════════════
# ACCOUNT STATE
# ═══════════════════════════════════════════════════════════════════

account_nonce = Gauge(
    'opgate_account_nonce',
    'Current nonce of the account on its own nonce key',
    registry=metrics_registry
)

account_balance = Gauge(
    'opgate_account_balance',
    'Native balance held by the account',
    registry=metrics_registry
)


def update_metrics(account):
    """
    Refresh the account state gauges.

    Args:
        account: SmartAccount being served
    """
    if account is None:
        return
    account_nonce.set(account.get_nonce())
    account_balance.set(account.balance)
