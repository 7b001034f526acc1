"""
Audit trail CLI

Commands:
- auditchain log append/query - Write and read audit entries
- auditchain verify - Verify per-principal hash chains
- auditchain report - Summary statistics
- auditchain event-types - List the event taxonomy
"""
