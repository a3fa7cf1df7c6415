"""
Estimation history for one signed-in user.

`EstimationHistory` keeps the user's estimation list in memory for the
lifetime of a session. The list is replaced wholesale after every successful
fetch or mutation; a failed fetch keeps the last good list and records an
error message instead of raising, so the list can still be shown.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from estimator.exceptions import EstimatorError, TransientIOError
from estimator.services import estimation_service
from estimator.services.cache_service import CacheService
from estimator.services.reconciliation_service import reconcile_estimation

logger = logging.getLogger(__name__)

CACHE_MODULE = 'estimations'
CACHE_KEY = 'last_good'


class EstimationHistory:
    """
    Session-scoped estimation list with last-known-good semantics.

    Usage:
        history = EstimationHistory(db_session, user_id, cache=get_cache())
        history.refresh()
        history.duplicate(history.estimations[0])
        history.close()
    """

    def __init__(self, session: Session, user_id: Optional[str],
                 cache: Optional[CacheService] = None, cache_ttl: Optional[int] = None):
        self.session = session
        self.user_id = user_id
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.estimations: List[Dict[str, Any]] = []
        self.error: Optional[str] = None
        # True once the list reflects the store (loaded or restored from cache)
        self.loaded = False

    def _remember(self) -> None:
        if self.loaded and self.cache and self.user_id:
            self.cache.set(self.user_id, CACHE_MODULE, CACHE_KEY, self.estimations, self.cache_ttl)

    def _last_known_good(self) -> Optional[List[Dict[str, Any]]]:
        if not self.cache or not self.user_id:
            return None
        cached = self.cache.get(self.user_id, CACHE_MODULE, CACHE_KEY)
        if not isinstance(cached, list):
            return None
        return [reconcile_estimation(record) for record in cached if isinstance(record, Mapping)]

    def _replace(self, estimations: List[Dict[str, Any]]) -> None:
        self.estimations = estimations
        self.error = None
        self._remember()

    def refresh(self) -> List[Dict[str, Any]]:
        """
        Reload the list.

        Returns the current list; on a storage failure it is the previous
        one and `error` holds a message for the user.
        """
        if not self.user_id:
            self.estimations = []
            self.error = None
            return self.estimations

        try:
            estimations = estimation_service.list_estimations(self.session, self.user_id)
            self.loaded = True
            self._replace(estimations)
        except TransientIOError as e:
            logger.warning(f"[ESTIMATION] Keeping last known estimations for {self.user_id}: {e.message}")
            self.error = e.message
            if not self.estimations:
                self.estimations = self._last_known_good() or []
        return self.estimations

    def restore(self) -> List[Dict[str, Any]]:
        """
        Seed the list from the cached last good list without querying.

        On a cache miss the list stays empty and is not written back.
        """
        cached = self._last_known_good()
        if cached is not None:
            self.estimations = cached
            self.loaded = True
        return self.estimations

    def delete(self, estimation_id: Any) -> None:
        """Delete an estimation and drop it from the list."""
        try:
            estimation_service.delete_estimation(self.session, self.user_id, estimation_id)
        except EstimatorError as e:
            self.error = e.message
            raise
        self._replace([est for est in self.estimations if est['id'] != str(estimation_id)])

    def update(self, estimation_id: Any, patch: Mapping[str, Any]) -> Dict[str, Any]:
        """Update an estimation and replace it in the list."""
        try:
            updated = estimation_service.update_estimation(self.session, self.user_id, estimation_id, patch)
        except EstimatorError as e:
            self.error = e.message
            raise
        self._replace([updated if est['id'] == updated['id'] else est for est in self.estimations])
        return updated

    def duplicate(self, estimation: Any) -> Dict[str, Any]:
        """Duplicate an estimation, then reload the list."""
        try:
            duplicate = estimation_service.duplicate_estimation(self.session, self.user_id, estimation)
        except EstimatorError as e:
            self.error = e.message
            raise
        self.refresh()
        return duplicate

    def close(self) -> None:
        """Drop the in-memory state (end of session)."""
        self.estimations = []
        self.error = None
        self.loaded = False
        self.session = None
