from flask import current_app

from app.logging_config import get_logger
from app.models import HistoryStatus, OrderMapping, OrderStatusHistory, db, utcnow

logger = get_logger(__name__)

DEFAULT_MAX_ENTRIES = 50


def _status(value):
    return value if isinstance(value, HistoryStatus) else HistoryStatus(value)


class HistoryService:
    """Order-history read model: one mapping per site order plus its status trail."""

    @staticmethod
    def record(order, status, crm_response=None, error_message=None, retry_count=None):
        """
        Create or update the mapping for an order and append a status entry.

        The CRM response is kept on the history entry only for failures or
        when it carries no CRM id; the latest response always goes on the
        mapping itself.

        Args:
            order: OrderEvent
            status: HistoryStatus or its string value
            crm_response: decoded CRM response, if any
            error_message: failure reason, if any
            retry_count: attempt counter after this event, if any
        """
        status = _status(status)
        now = utcnow()

        mapping = OrderMapping.query.filter_by(external_order_id=order.external_order_id).first()
        if mapping is None:
            mapping = OrderMapping(
                external_order_id=order.external_order_id,
                site_order=order.to_dict(),
                current_status=status,
                created_at=now,
            )
            db.session.add(mapping)
        else:
            # Later lifecycle stages replace the stored site order
            mapping.site_order = order.to_dict()

        mapping.current_status = status
        mapping.updated_at = now
        if crm_response is not None:
            mapping.crm_order = crm_response

        keep_response = status in (HistoryStatus.FAILED, HistoryStatus.DEAD_LETTER) or (
            isinstance(crm_response, dict) and not crm_response.get("id")
        )
        mapping.status_history.append(OrderStatusHistory(
            status=status,
            date=now,
            crm_response=crm_response if keep_response else None,
            error_message=error_message,
            retry_count=retry_count,
        ))
        db.session.flush()

        HistoryService._trim(mapping.id)
        db.session.commit()
        return mapping

    @staticmethod
    def record_safely(order, status, **details):
        """record() that logs instead of raising; history never blocks the queue."""
        try:
            return HistoryService.record(order, status, **details)
        except Exception as e:
            db.session.rollback()
            logger.error(
                "Failed to record order history",
                order_id=order.external_order_id,
                status=str(status),
                error=str(e),
                exc_info=True,
            )
            return None

    @staticmethod
    def _trim(mapping_id):
        max_entries = current_app.config.get("HISTORY_MAX_ENTRIES", DEFAULT_MAX_ENTRIES)
        stale_ids = [
            row.id for row in (
                db.session.query(OrderStatusHistory.id)
                .filter(OrderStatusHistory.mapping_id == mapping_id)
                .order_by(OrderStatusHistory.id.desc())
                .offset(max_entries)
                .all()
            )
        ]
        if stale_ids:
            db.session.query(OrderStatusHistory).filter(
                OrderStatusHistory.id.in_(stale_ids)
            ).delete(synchronize_session=False)

    @staticmethod
    def get_mapping(order_id):
        return OrderMapping.query.filter_by(external_order_id=str(order_id)).first()

    @staticmethod
    def get_history(page=1, page_size=10):
        """Mappings ordered by last update, newest first."""
        page = max(int(page), 1)
        page_size = max(int(page_size), 1)
        return (
            OrderMapping.query
            .order_by(OrderMapping.updated_at.desc(), OrderMapping.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )

    @staticmethod
    def get_history_count():
        return OrderMapping.query.count()

    @staticmethod
    def get_by_status(status, limit=1000):
        return (
            OrderMapping.query
            .filter(OrderMapping.current_status == _status(status))
            .order_by(OrderMapping.updated_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def get_stats():
        by_status = {
            status.value: count
            for status, count in (
                db.session.query(OrderMapping.current_status, db.func.count(OrderMapping.id))
                .group_by(OrderMapping.current_status)
                .all()
            )
        }
        oldest, newest = db.session.query(
            db.func.min(OrderMapping.updated_at), db.func.max(OrderMapping.updated_at)
        ).one()
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "oldest_record": oldest.isoformat() if oldest else None,
            "newest_record": newest.isoformat() if newest else None,
        }

    @staticmethod
    def clean():
        """Delete all history. Returns counts in the shape the operator route reports."""
        to_delete = OrderMapping.query.count()
        errors = []
        deleted = 0
        try:
            OrderStatusHistory.query.delete()
            deleted = OrderMapping.query.delete()
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            logger.error("History cleanup failed", error=str(e), exc_info=True)
            errors.append(f"Cleanup failed: {e}")
        return {"to_delete": to_delete, "deleted": deleted, "errors": errors}
