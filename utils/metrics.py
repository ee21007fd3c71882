"""
utils.metrics
=============
Definisce metriche custom Prometheus.
"""

from prometheus_client import Counter

# Totale validazioni markup raggruppate per esito
VALIDATION_RESULT = Counter(
    "markup_validation_result_total",
    "Conteggio validazioni W3C delle pagine HTML per esito",
    ["status"],          # label: ok | ko | error
)
