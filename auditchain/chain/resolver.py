"""
Resolve the current tail of a principal's hash chain.
"""

import logging
from typing import Optional

from ..core.entry import AuditLogEntry
from ..core.errors import ChainResolutionFailure, StoreError
from ..log.integrity import GENESIS
from ..log.store import AuditStore

logger = logging.getLogger(__name__)


class ChainResolver:
    """
    Reads the chain tail from durable storage on every call.

    Nothing is cached: several processes may append to the same chain, so
    only the store is authoritative. A failed read is raised as
    ChainResolutionFailure; GENESIS is returned only when the store
    positively reports an empty chain.
    """

    def __init__(self, store: AuditStore) -> None:
        self.store = store

    def tail(self, principal_id: str) -> Optional[AuditLogEntry]:
        try:
            return self.store.get_latest_by_principal(principal_id)
        except (StoreError, OSError) as e:
            logger.error(
                f"Chain tail unreadable for principal {principal_id}: {e}",
                extra={"trace_id": principal_id},
            )
            raise ChainResolutionFailure(
                f"cannot resolve chain tail for '{principal_id}': {e}"
            ) from e

    def tail_hash(self, principal_id: str) -> str:
        latest = self.tail(principal_id)
        return latest.hash if latest is not None else GENESIS
