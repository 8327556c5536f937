"""
Order Module - Service Layer
===============================
Checkout snapshot, cash-on-delivery orders, lifecycle transitions,
payment settlement with atomic stock commit, and expiration cleanup.
"""

import enum
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy import desc

from common.exceptions import NotFoundError, ValidationError, ConflictError, AuthorizationError
from common.helpers import now_utc, generate_order_number, safe_int
from modules.cart.models import Cart, CartItem
from modules.cart.service import parse_quantity
from modules.catalog.models import Product
from modules.customer.address_models import Address
from modules.customer.service import address_service
from modules.order.lifecycle import assert_transition
from modules.order.models import (
    Order, OrderItem, OrderStatusLog, OrderStatus, PaymentMethod,
)
from modules.pricing.calculator import calculate_order_totals, calculate_subtotal
from modules.user.models import User

logger = logging.getLogger("saakie.order")

STOCK_CONFLICT = "stock_conflict"
CAPTURED_AFTER_CANCEL = "captured_after_cancel"

_PAST_PAYMENT = {
    OrderStatus.PAID.value, OrderStatus.FULFILLING.value,
    OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value,
}


class SettlementOutcome(str, enum.Enum):
    SETTLED = "settled"
    ALREADY_SETTLED = "already_settled"
    STOCK_CONFLICT = "stock_conflict"
    CAPTURED_AFTER_CANCEL = "captured_after_cancel"
    NOT_PAYABLE = "not_payable"


class OrderService:

    # ==========================================
    # Checkout (prepaid, from cart)
    # ==========================================

    def checkout(self, db: Session, user_id: int, payment_method: str,
                 shipping_address: Address, billing_address: Optional[Address] = None) -> Order:
        """
        Snapshot the user's cart into a CREATED order. Prices come from the
        cart lines; the caller has already validated the cart.
        """
        cart = db.query(Cart).filter(Cart.user_id == user_id).first()
        if not cart or not cart.items:
            raise ValidationError("Cart is empty")

        lines = [(it.price, it.quantity) for it in cart.items]
        totals = calculate_order_totals(calculate_subtotal(lines))

        order = Order(
            order_number=generate_order_number(),
            user_id=user_id,
            status=OrderStatus.CREATED.value,
            payment_method=payment_method,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount=totals.discount,
            total=totals.total,
            shipping_address_id=shipping_address.id,
            billing_address_id=(billing_address or shipping_address).id,
        )
        for it in cart.items:
            order.items.append(OrderItem(
                product_id=it.product_id,
                quantity=it.quantity,
                price=it.price,
                total=it.price * it.quantity,
            ))
        db.add(order)
        db.flush()
        self.log_status_change(db, order.id, None, OrderStatus.CREATED.value, f"user:{user_id}")
        logger.info(f"Order {order.order_number} created for user #{user_id} (total {totals.total})")
        return order

    def attach_gateway_ref(self, db: Session, order: Order, gateway_ref: str, actor: str):
        """Persist the gateway object id and open the order for payment."""
        order.gateway_ref = gateway_ref
        self.transition(db, order, OrderStatus.AWAITING_PAYMENT.value, actor=actor)

    # ==========================================
    # Cash on delivery (guest or signed-in)
    # ==========================================

    def create_cod_order(self, db: Session, user: Optional[User], data: Dict[str, Any]) -> Order:
        """
        Single-product cash-on-delivery order. The price is taken from the
        product, never from the request. Stock is committed immediately.
        """
        product_id = safe_int(data.get("productId"))
        if product_id is None:
            raise ValidationError("productId is required")
        quantity = parse_quantity(data.get("quantity"), default=1)

        product = db.query(Product).filter(Product.id == product_id).first()
        if not product or not product.is_active:
            raise NotFoundError("Product not found")

        address = address_service.create(db, user.id if user else None, {
            "name": data.get("name"),
            "phone": data.get("phone"),
            "addressLine1": data.get("address") or data.get("addressLine1"),
            "city": data.get("city"),
            "state": data.get("state"),
            "pincode": data.get("pincode"),
        })

        if not self._decrement_stock(db, product.id, quantity):
            db.refresh(product)
            raise ValidationError(f"Only {product.stock} items available in stock")

        totals = calculate_order_totals(calculate_subtotal([(product.price, quantity)]))
        notes = ["COD Order"]
        if data.get("selectedColor"):
            notes.append(f"Color: {data['selectedColor']}")
        if data.get("selectedSize"):
            notes.append(f"Size: {data['selectedSize']}")

        order = Order(
            order_number=generate_order_number(),
            user_id=user.id if user else None,
            status=OrderStatus.CREATED.value,
            payment_method=PaymentMethod.COD.value,
            stock_committed=True,
            subtotal=totals.subtotal,
            shipping=totals.shipping,
            tax=totals.tax,
            discount=totals.discount,
            total=totals.total,
            shipping_address_id=address.id,
            billing_address_id=address.id,
            notes=" - ".join(notes),
        )
        order.items.append(OrderItem(
            product_id=product.id,
            quantity=quantity,
            price=product.price,
            total=product.price * quantity,
        ))
        db.add(order)
        db.flush()

        actor = f"user:{user.id}" if user else "guest"
        self.log_status_change(db, order.id, None, OrderStatus.CREATED.value, actor)
        self.transition(db, order, OrderStatus.AWAITING_PAYMENT.value, actor=actor, note="cash on delivery")
        logger.info(f"COD order {order.order_number} created ({actor}, product #{product.id} x{quantity})")
        return order

    # ==========================================
    # Lifecycle
    # ==========================================

    def transition(self, db: Session, order: Order, target: str, actor: str = "system",
                   note: str = "") -> Order:
        """Apply a guarded status change with its side effects and audit row."""
        assert_transition(order, target)
        old = order.status
        now = now_utc()

        if target == OrderStatus.CANCELLED.value:
            if order.stock_committed:
                self._restock(db, order)
            order.cancelled_at = now
            order.cancellation_reason = note or order.cancellation_reason
        elif target == OrderStatus.PAID.value:
            order.paid_at = now
        elif target == OrderStatus.DELIVERED.value and order.is_cod:
            order.paid_at = now
        elif target == OrderStatus.REFUNDED.value:
            order.refund_required = False

        order.status = target
        db.flush()
        self.log_status_change(db, order.id, old, target, actor, note)
        logger.info(f"Order {order.order_number}: {old} -> {target} by {actor}")
        return order

    def log_status_change(self, db: Session, order_id: int, old: Optional[str], new: str,
                          actor: str, note: str = ""):
        db.add(OrderStatusLog(
            order_id=order_id, old_status=old, new_status=new,
            changed_by=actor, note=note or None,
        ))
        db.flush()

    # ==========================================
    # Payment settlement
    # ==========================================

    def settle_payment(self, db: Session, order_id: int, payment_ref: str,
                       actor: str = "system") -> SettlementOutcome:
        """
        Idempotent PAID transition shared by client confirm and both webhooks.

        One transaction: conditional AWAITING_PAYMENT -> PAID, guarded stock
        decrement per line, buyer's cart cleared. If any line lacks stock the
        work is rolled back and the order is cancelled with refund_required.
        Must be the first write of the caller's unit of work.
        """
        now = now_utc()
        claimed = db.query(Order).filter(
            Order.id == order_id,
            Order.status == OrderStatus.AWAITING_PAYMENT.value,
            Order.payment_method != PaymentMethod.COD.value,
        ).update({
            Order.status: OrderStatus.PAID.value,
            Order.payment_ref: payment_ref,
            Order.paid_at: now,
            Order.payment_error: None,
            Order.stock_committed: True,
        }, synchronize_session="fetch")

        if claimed != 1:
            order = db.query(Order).filter(Order.id == order_id).first()
            if order and order.status in _PAST_PAYMENT:
                logger.info(f"Order #{order_id} already settled; {actor} ignored")
                return SettlementOutcome.ALREADY_SETTLED
            if order and order.status == OrderStatus.CANCELLED.value:
                self._flag_refund_after_cancel(db, order_id, payment_ref, actor)
                return SettlementOutcome.CAPTURED_AFTER_CANCEL
            logger.warning(f"Order #{order_id} not payable (status={order.status if order else 'missing'})")
            return SettlementOutcome.NOT_PAYABLE

        lines = db.query(OrderItem.product_id, OrderItem.quantity).filter(OrderItem.order_id == order_id).all()
        for product_id, qty in lines:
            if not self._decrement_stock(db, product_id, qty):
                db.rollback()
                self._cancel_for_stock_conflict(db, order_id, payment_ref, product_id)
                return SettlementOutcome.STOCK_CONFLICT

        order = db.query(Order).filter(Order.id == order_id).first()
        if order.user_id:
            cart_ids = [c.id for c in db.query(Cart.id).filter(Cart.user_id == order.user_id)]
            db.query(CartItem).filter(CartItem.cart_id.in_(cart_ids)).delete(synchronize_session=False)

        self.log_status_change(db, order_id, OrderStatus.AWAITING_PAYMENT.value, OrderStatus.PAID.value, actor, payment_ref)
        logger.info(f"Order {order.order_number} settled by {actor} (ref {payment_ref})")
        return SettlementOutcome.SETTLED

    def fail_payment(self, db: Session, order_id: int, reason: str = "", cancelled: bool = False,
                     actor: str = "system") -> bool:
        """AWAITING_PAYMENT -> CANCELLED for a failed or cancelled payment. Idempotent."""
        changed = db.query(Order).filter(
            Order.id == order_id,
            Order.status == OrderStatus.AWAITING_PAYMENT.value,
            Order.payment_method != PaymentMethod.COD.value,
        ).update({
            Order.status: OrderStatus.CANCELLED.value,
            Order.payment_error: None if cancelled else (reason or "payment_failed"),
            Order.cancelled_at: now_utc(),
            Order.cancellation_reason: "Payment cancelled" if cancelled else "Payment failed",
        }, synchronize_session="fetch")
        if changed:
            self.log_status_change(
                db, order_id, OrderStatus.AWAITING_PAYMENT.value, OrderStatus.CANCELLED.value,
                actor, reason or ("cancelled" if cancelled else "failed"),
            )
            logger.info(f"Order #{order_id} payment {'cancelled' if cancelled else 'failed'}: {reason}")
        return bool(changed)

    def find_by_gateway_ref(self, db: Session, gateway_ref: str) -> Optional[Order]:
        if not gateway_ref:
            return None
        return db.query(Order).filter(Order.gateway_ref == gateway_ref).first()

    # ==========================================
    # Expiration Cleanup
    # ==========================================

    def release_expired_orders(self, db: Session, timeout_minutes: int) -> int:
        """Cancel prepaid orders left unpaid past the timeout."""
        limit_time = now_utc() - timedelta(minutes=timeout_minutes)
        expired = (
            db.query(Order)
            .filter(
                Order.status.in_([OrderStatus.CREATED.value, OrderStatus.AWAITING_PAYMENT.value]),
                Order.payment_method != PaymentMethod.COD.value,
                Order.created_at < limit_time,
            )
            .all()
        )

        count = 0
        for order in expired:
            self.transition(
                db, order, OrderStatus.CANCELLED.value, actor="system:scheduler",
                note=f"Not paid within {timeout_minutes} minutes",
            )
            count += 1
        return count

    # ==========================================
    # Query
    # ==========================================

    def get_user_orders(self, db: Session, user_id: int, status: str = "",
                        payment_status: str = "", limit: int = 50) -> List[Order]:
        q = db.query(Order).filter(Order.user_id == user_id)
        if status:
            q = q.filter(Order.status == status)
        orders = q.order_by(desc(Order.created_at), desc(Order.id)).limit(limit).all()
        if payment_status:
            orders = [o for o in orders if o.payment_status == payment_status]
        return orders

    def get_order_for(self, db: Session, user: User, order_id: int) -> Order:
        """Owner or admin may read an order; anyone else gets 404."""
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order or (order.user_id != user.id and not user.is_admin):
            raise NotFoundError("Order not found")
        return order

    def get_owned(self, db: Session, user_id: int, order_id) -> Order:
        order = db.query(Order).filter(Order.id == safe_int(order_id), Order.user_id == user_id).first()
        if not order:
            raise NotFoundError("Order not found")
        return order

    def get_all_orders(self, db: Session, status: str = "", page: int = 1,
                       per_page: int = 20) -> Tuple[List[Order], int]:
        q = db.query(Order)
        if status:
            q = q.filter(Order.status == status)
        total = q.count()
        orders = q.order_by(desc(Order.created_at), desc(Order.id)).offset((page - 1) * per_page).limit(per_page).all()
        return orders, total

    def admin_update(self, db: Session, order_id: int, data: Dict[str, Any], admin: User) -> Order:
        order = db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError("Order not found")
        if not admin.is_admin:
            raise AuthorizationError()

        target = data.get("status")
        if target and target != order.status:
            if target not in {s.value for s in OrderStatus}:
                raise ValidationError("Invalid status")
            assert_transition(order, target)
            if target == OrderStatus.PAID.value:
                # Manual payment still has to commit stock
                outcome = self.settle_payment(db, order.id, f"manual:admin:{admin.id}", actor=f"admin:{admin.id}")
                if outcome == SettlementOutcome.STOCK_CONFLICT:
                    raise ConflictError("Insufficient stock to mark order as paid")
                db.refresh(order)
            else:
                self.transition(db, order, target, actor=f"admin:{admin.id}", note=data.get("note") or "")
        if "notes" in data:
            order.notes = data.get("notes")
            db.flush()
        return order

    # ==========================================
    # Private Helpers
    # ==========================================

    def _decrement_stock(self, db: Session, product_id: int, qty: int) -> bool:
        """stock -= qty only if stock >= qty; True when exactly one row changed."""
        changed = db.query(Product).filter(
            Product.id == product_id,
            Product.stock >= qty,
        ).update({Product.stock: Product.stock - qty}, synchronize_session="fetch")
        return changed == 1

    def _restock(self, db: Session, order: Order):
        for item in order.items:
            db.query(Product).filter(Product.id == item.product_id).update(
                {Product.stock: Product.stock + item.quantity}, synchronize_session="fetch",
            )
        order.stock_committed = False

    def _cancel_for_stock_conflict(self, db: Session, order_id: int, payment_ref: str, product_id: int):
        """Compensation after a rolled-back settlement: cancel and flag for refund."""
        changed = db.query(Order).filter(
            Order.id == order_id,
            Order.status == OrderStatus.AWAITING_PAYMENT.value,
        ).update({
            Order.status: OrderStatus.CANCELLED.value,
            Order.payment_ref: payment_ref,
            Order.payment_error: STOCK_CONFLICT,
            Order.refund_required: True,
            Order.cancelled_at: now_utc(),
            Order.cancellation_reason: f"Insufficient stock for product #{product_id} at payment time",
        }, synchronize_session="fetch")
        if changed:
            self.log_status_change(
                db, order_id, OrderStatus.AWAITING_PAYMENT.value, OrderStatus.CANCELLED.value,
                "system:settlement", STOCK_CONFLICT,
            )
        logger.error(f"Order #{order_id} paid ({payment_ref}) but stock conflict on product #{product_id}; refund required")

    def _flag_refund_after_cancel(self, db: Session, order_id: int, payment_ref: str, actor: str):
        """A capture landed on an order that was already cancelled: record it and flag for refund."""
        changed = db.query(Order).filter(
            Order.id == order_id,
            Order.status == OrderStatus.CANCELLED.value,
            Order.payment_method != PaymentMethod.COD.value,
            Order.refund_required == False,
        ).update({
            Order.payment_ref: payment_ref,
            Order.payment_error: CAPTURED_AFTER_CANCEL,
            Order.refund_required: True,
        }, synchronize_session="fetch")
        if changed:
            self.log_status_change(
                db, order_id, OrderStatus.CANCELLED.value, OrderStatus.CANCELLED.value,
                actor, f"{CAPTURED_AFTER_CANCEL}: {payment_ref}",
            )
            logger.error(f"Order #{order_id} was cancelled but payment {payment_ref} was captured; refund required")


# Singleton
order_service = OrderService()
