# Order status management for brands
# Status moves along pending -> paid -> shipped -> delivered (cancel before
# shipping). Delivery runs the completion cascade in the same transaction.

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from database.commerce_models import AttributionStatusDB, Order, OrderItem, OrderStatusDB, Product
from database.models import User, UserType
from services.completion_monitor import CompletionMonitor
from services.errors import AccessDenied, NotFound, StateConflict, ValidationError
from services.state_machine import ORDER_TRANSITIONS, ensure_transition
from services.task_dispatcher import SEND_ORDER_STATUS_EMAIL, PendingTasks, TaskDispatcher

logger = logging.getLogger(__name__)


class OrderService:
    def __init__(self, db: Session, dispatcher: TaskDispatcher):
        self.db = db
        self.tasks = PendingTasks(dispatcher)

    def get_order(self, user: User, order_id: str) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if user.user_type == UserType.ADMIN or order.customer_user_id == user.id:
            return order
        if self._brand_owns(user.id, order):
            return order
        raise AccessDenied("Access denied")

    def list_for_customer(self, user_id: str) -> List[Order]:
        return self.db.query(Order).filter(Order.customer_user_id == user_id).order_by(Order.created_at.desc()).all()

    def list_for_brand(self, brand_id: str, status: Optional[OrderStatusDB] = None, page: int = 1, limit: int = 20) -> List[Order]:
        query = self.db.query(Order).join(OrderItem).join(Product).filter(Product.brand_id == brand_id)
        if status:
            query = query.filter(Order.status == status)
        return query.distinct().order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    def _brand_owns(self, brand_id: str, order: Order) -> bool:
        product_ids = [item.product_id for item in order.items]
        if not product_ids:
            return False
        owned = self.db.query(Product).filter(Product.id.in_(product_ids), Product.brand_id == brand_id).count()
        return owned == len(set(product_ids))

    def update_status(self, brand: User, order_id: str, new_status: str, note: Optional[str] = None) -> Order:
        try:
            target = OrderStatusDB(new_status)
        except ValueError:
            raise ValidationError(f"Invalid order status: {new_status}")

        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound("Order not found")
        if brand.user_type != UserType.ADMIN and not self._brand_owns(brand.id, order):
            raise AccessDenied("Access denied")

        current = order.status
        ensure_transition(current, target, ORDER_TRANSITIONS, "order status")

        now = datetime.utcnow()
        history = list(order.status_history or [])
        history.append({"status": target.value, "timestamp": now.isoformat(), "note": note or ""})

        values = {"status": target, "status_history": history}
        if target == OrderStatusDB.CANCELLED and order.attribution_status == AttributionStatusDB.PENDING:
            values["attribution_status"] = AttributionStatusDB.CANCELLED

        monitor = CompletionMonitor(self.db, self.tasks)
        try:
            updated = self.db.query(Order).filter(
                Order.id == order_id,
                Order.status == current,
            ).update(values, synchronize_session="fetch")
            if not updated:
                raise StateConflict("Order was updated by another request, please reload")

            if target == OrderStatusDB.DELIVERED:
                completed = monitor.on_order_delivered(order)
                if completed:
                    logger.info(f"Order {order.order_number} completed campaigns {completed}")

            self.db.commit()
        except Exception:
            self.db.rollback()
            self.tasks.discard()
            raise

        self.db.refresh(order)
        logger.info(f"Order {order.order_number}: {current.value} -> {target.value}")

        self.tasks.add(SEND_ORDER_STATUS_EMAIL, order_id=order.id, status=target.value)
        self.tasks.flush()
        return order
