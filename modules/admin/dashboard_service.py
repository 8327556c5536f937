"""
Admin Dashboard Service
=========================
Aggregated statistics for the admin dashboard.
"""

from datetime import timedelta
from typing import Dict, Any, List

from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func

from modules.order.models import Order, OrderItem, OrderStatus
from modules.user.models import User
from modules.catalog.models import Product
from common.helpers import now_utc, money, iso

_REVENUE_EXCLUDED = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)
_PENDING = (OrderStatus.CREATED.value, OrderStatus.AWAITING_PAYMENT.value)


class DashboardService:

    def get_overview_stats(self, db: Session) -> Dict[str, Any]:
        """Key business metrics."""
        now = now_utc()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        active_since = now - timedelta(days=30)

        # Revenue (from orders that received money and kept it)
        revenue_q = db.query(sa_func.coalesce(sa_func.sum(Order.total), 0)).filter(
            Order.paid_at.isnot(None),
            Order.status.notin_(_REVENUE_EXCLUDED),
        )
        total_revenue = revenue_q.scalar()
        monthly_revenue = revenue_q.filter(Order.paid_at >= month_start).scalar()

        return {
            "totalUsers": db.query(User).count(),
            "totalOrders": db.query(Order).count(),
            "totalProducts": db.query(Product).count(),
            "totalRevenue": money(total_revenue),
            "monthlyRevenue": money(monthly_revenue),
            "pendingOrders": db.query(Order).filter(Order.status.in_(_PENDING)).count(),
            "activeUsers": db.query(User).filter(User.updated_at >= active_since).count(),
            "lowStockProducts": db.query(Product).filter(Product.stock <= Product.low_stock_alert).count(),
            "refundsRequired": db.query(Order).filter(Order.refund_required == True).count(),
            "topProducts": self.get_top_products(db),
            "recentOrders": self.get_recent_orders(db),
        }

    def get_top_products(self, db: Session, limit: int = 5) -> List[Dict[str, Any]]:
        rows = (
            db.query(Product, sa_func.count(OrderItem.id).label("order_count"))
            .outerjoin(OrderItem, OrderItem.product_id == Product.id)
            .group_by(Product.id)
            .order_by(sa_func.count(OrderItem.id).desc(), Product.id.asc())
            .limit(limit)
            .all()
        )
        result = []
        for product, order_count in rows:
            image = product.primary_image
            result.append({
                "id": product.id,
                "name": product.name,
                "price": money(product.price),
                "stock": product.stock,
                "image": image.url if image else None,
                "orderCount": order_count,
            })
        return result

    def get_recent_orders(self, db: Session, limit: int = 5) -> List[Dict[str, Any]]:
        orders = db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
        return [
            {
                "id": o.id,
                "orderNumber": o.order_number,
                "total": money(o.total),
                "status": o.status,
                "paymentStatus": o.payment_status,
                "createdAt": iso(o.created_at),
                "user": {"name": o.user.name, "email": o.user.email} if o.user else None,
            }
            for o in orders
        ]


dashboard_service = DashboardService()
