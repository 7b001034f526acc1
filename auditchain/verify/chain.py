"""
Replay a principal's hash chain and report the first integrity violation.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Union

from ..core.errors import QueryFailure
from ..log.integrity import GENESIS, hash_entry
from ..log.store import AuditStore, SortOrder
from ..logging_config import get_logger
from ..metrics import track_verification
from ..query.engine import AuditQuery, QueryEngine


@dataclass(frozen=True)
class Ok:
    count: int
    principal_id: str = ""

    @property
    def valid(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "ok", **asdict(self)}


@dataclass(frozen=True)
class Tampered:
    """An entry's stored hash does not match its recomputed content hash."""

    at_entry_id: str
    expected_hash: str
    actual_hash: str
    principal_id: str = ""
    position: int = 0

    @property
    def valid(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "tampered", **asdict(self)}


@dataclass(frozen=True)
class Broken:
    """An entry does not link to the hash of the entry before it (gap or reorder)."""

    at_entry_id: str
    expected_previous_hash: str
    actual_previous_hash: str
    principal_id: str = ""
    position: int = 0

    @property
    def valid(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"result": "broken", **asdict(self)}


VerificationResult = Union[Ok, Tampered, Broken]


class ChainVerifier:
    """
    Verifies per-principal chains.

    Checks, in ascending timestamp order:
    - first entry links to GENESIS, every later entry to the recomputed
      hash of its predecessor
    - every entry's stored hash equals its recomputed hash
    Returns the first violation; never repairs anything.
    """

    def __init__(self, store_or_engine: Union[AuditStore, QueryEngine], page_size: int = 200) -> None:
        if isinstance(store_or_engine, QueryEngine):
            self.engine = store_or_engine
        else:
            self.engine = QueryEngine(store_or_engine)
        self.page_size = min(page_size, self.engine.max_limit)

    def verify(self, principal_id: str) -> VerificationResult:
        """
        Raises:
            QueryFailure: If the chain could not be read completely
        """
        log = get_logger(__name__, trace_id=principal_id)
        entries = self.engine.iter_all(
            AuditQuery(principal_id=principal_id), sort=SortOrder.ASC, page_size=self.page_size
        )

        try:
            result = self._check(principal_id, entries)
        except QueryFailure:
            log.error("Chain verification aborted: storage read failed")
            track_verification("error")
            raise

        if isinstance(result, Ok):
            log.info(f"Chain verified: {result.count} entries")
            track_verification("ok")
        else:
            log.warning(f"Chain integrity violation: {result.to_dict()}")
            track_verification("tampered" if isinstance(result, Tampered) else "broken")
        return result

    def verify_many(self, principal_ids: Iterable[str]) -> Dict[str, VerificationResult]:
        return {pid: self.verify(pid) for pid in principal_ids}

    def _check(self, principal_id: str, entries) -> VerificationResult:
        expected_previous = GENESIS
        count = 0
        for entry in entries:
            if entry.previous_hash != expected_previous:
                return Broken(
                    at_entry_id=entry.id,
                    expected_previous_hash=expected_previous,
                    actual_previous_hash=entry.previous_hash,
                    principal_id=principal_id,
                    position=count,
                )

            recomputed = hash_entry(entry)
            if recomputed != entry.hash:
                return Tampered(
                    at_entry_id=entry.id,
                    expected_hash=recomputed,
                    actual_hash=entry.hash,
                    principal_id=principal_id,
                    position=count,
                )

            expected_previous = recomputed
            count += 1
        return Ok(count=count, principal_id=principal_id)
