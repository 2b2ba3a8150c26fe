"""
Key-value access layer (Redis).

Key schema:
- session:{id}                          checkout / subscription metadata
- evt:{provider}:{event_id}             processed-event markers
- {category}:{provider}[:...]:{date}    best-effort metrics counters
"""
from paygate.kv.session_store import SessionStore
from paygate.kv.event_ledger import EventLedger
from paygate.kv.counters import MetricsCounter

__all__ = ["SessionStore", "EventLedger", "MetricsCounter"]
