from app.services.base import BaseService
from app.models.audit_log import AuditLog
from typing import Any, Optional


def _sanitize(obj: Any) -> Any:
    """Makes nested pydantic models, dates and enums JSON-storable."""
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_sanitize(i) for i in obj]
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    if hasattr(obj, "value"):
        return obj.value
    return obj


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        user_id: Optional[int],
        user_role: Optional[str],
        details: dict,
        before_state: Optional[dict] = None,
        after_state: Optional[dict] = None
    ):
        """
        Create an audit log entry in the caller's transaction.
        Not committed here: the entry lands or rolls back together with the change it describes.
        """
        try:
            db_log = AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=user_id,
                user_role=user_role,
                details=_sanitize(details),
                before_state=_sanitize(before_state),
                after_state=_sanitize(after_state)
            )
            self.db.add(db_log)
            return db_log
        except Exception as e:
            # Never break the main app flow because of an audit failure
            self._logger.error(f"FAILED TO AUDIT LOG: {e}", exc_info=True)
            return None
