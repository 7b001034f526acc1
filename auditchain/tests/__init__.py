"""
Test suite for the audit trail.

Focus areas:
- Canonical serialization determinism
- Hash chain linkage and tamper detection
- Concurrent append safety (no forks)
- Query pagination completeness
"""
