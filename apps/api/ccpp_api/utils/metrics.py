"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Ledger metrics
ledger_appends = Counter(
    "ccpp_ledger_appends_total",
    "Log entries appended to the ledger",
    ["type"],
)

ledger_append_conflicts = Counter(
    "ccpp_ledger_append_conflicts_total",
    "Appends retried after a signature uniqueness conflict",
)

ledger_verifications = Counter(
    "ccpp_ledger_verifications_total",
    "Ledger chain verifications",
    ["result"],
)

# Vision metrics
fingerprint_duration = Histogram(
    "ccpp_fingerprint_duration_seconds",
    "Perceptual fingerprint computation duration",
)

identifications = Counter(
    "ccpp_identifications_total",
    "Visual identification requests",
    ["outcome"],
)

provisionings = Counter(
    "ccpp_provisionings_total",
    "Equipment provisioned from a captured photo",
)
