"""
Tamper-Evident Audit Trail

Append-only audit log with per-principal hash chains, filtered queries and
chain verification.
"""

__version__ = "0.1.0"
