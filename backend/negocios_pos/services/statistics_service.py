# Overview: Service-layer operations for sales statistics; read-only aggregates over sales and sale lines.

"""
Sales Statistics

Read-only aggregates for one tenant over a period of whole days (UTC):
sales and returns (returns carry negative totals, so the net figure is a
plain sum), a daily series, top products, payment methods, sales per
operator and catalog stock counts.

Periods:
- hoy: today
- semana: the last 7 days plus today
- mes: the last 30 days plus today
- personalizado: start_date..end_date (YYYY-MM-DD, inclusive, at most
  365 days apart)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import func

from ..errors import ResourceNotFound
from ..extensions import db
from ..models import Product, Sale, SaleLine, User
from ..time_utils import utcnow
from ..validation import ValidationError
from .tenant_service import get_tenant, require_tenant


PERIOD_TODAY = "hoy"
PERIOD_WEEK = "semana"
PERIOD_MONTH = "mes"
PERIOD_CUSTOM = "personalizado"
PERIODS = (PERIOD_TODAY, PERIOD_WEEK, PERIOD_MONTH, PERIOD_CUSTOM)

MAX_RANGE_DAYS = 365
TOP_PRODUCTS_LIMIT = 10


@dataclass(frozen=True)
class ReportPeriod:
    kind: str
    start_date: date
    end_date: date

    @property
    def start(self) -> datetime:
        return datetime.combine(self.start_date, time.min)

    @property
    def end_exclusive(self) -> datetime:
        return datetime.combine(self.end_date + timedelta(days=1), time.min)

    @property
    def days(self) -> int:
        return (self.end_date - self.start_date).days + 1

    def to_dict(self) -> dict:
        return {
            "type": self.kind,
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "days": self.days,
        }


def _parse_date(key: str, value) -> date:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{key} is required for a custom period")
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{key} must be a date (YYYY-MM-DD)")


def resolve_period(period=None, start_date=None, end_date=None, *, today: date | None = None) -> ReportPeriod:
    """Turn the period query parameters into an inclusive day range."""
    today = today or utcnow().date()
    kind = (period or PERIOD_TODAY).strip().lower()

    if kind == PERIOD_TODAY:
        return ReportPeriod(kind, today, today)
    if kind == PERIOD_WEEK:
        return ReportPeriod(kind, today - timedelta(days=7), today)
    if kind == PERIOD_MONTH:
        return ReportPeriod(kind, today - timedelta(days=30), today)
    if kind == PERIOD_CUSTOM:
        start = _parse_date("start_date", start_date)
        end = _parse_date("end_date", end_date)
        if end < start:
            raise ValidationError("end_date cannot be before start_date")
        if (end - start).days > MAX_RANGE_DAYS:
            raise ValidationError(f"The period cannot exceed {MAX_RANGE_DAYS} days")
        return ReportPeriod(kind, start, end)

    raise ValidationError(f"period must be one of: {', '.join(PERIODS)}")


def _totals(tenant_id: int, period: ReportPeriod, *, returns: bool) -> dict:
    count, total = db.session.query(
        func.count(Sale.id),
        func.coalesce(func.sum(Sale.total_cents), 0),
    ).filter(
        Sale.tenant_id == tenant_id,
        Sale.is_return.is_(returns),
        Sale.created_at >= period.start,
        Sale.created_at < period.end_exclusive,
    ).one()
    return {"count": int(count or 0), "total_cents": int(total or 0)}


def _daily(tenant_id: int, period: ReportPeriod) -> list[dict]:
    day = func.date(Sale.created_at)
    rows = db.session.query(
        day.label("day"),
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= period.start,
        Sale.created_at < period.end_exclusive,
    ).group_by(day).order_by(day).all()

    return [
        {"date": str(row.day), "count": int(row.count), "total_cents": int(row.total_cents)}
        for row in rows
    ]


def _top_products(tenant_id: int, period: ReportPeriod) -> list[dict]:
    """Net units per product (returned units subtract), best sellers first."""
    units = func.sum(SaleLine.quantity)
    rows = db.session.query(
        Product.id.label("product_id"),
        Product.name.label("name"),
        units.label("units"),
        func.coalesce(func.sum(SaleLine.line_subtotal_cents), 0).label("subtotal_cents"),
    ).select_from(SaleLine).join(Sale, SaleLine.sale_id == Sale.id).join(
        Product, SaleLine.product_id == Product.id
    ).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= period.start,
        Sale.created_at < period.end_exclusive,
    ).group_by(Product.id, Product.name).having(units > 0).order_by(
        units.desc(), Product.name.asc()
    ).limit(TOP_PRODUCTS_LIMIT).all()

    return [
        {
            "product_id": row.product_id,
            "name": row.name,
            "units": int(row.units),
            "subtotal_cents": int(row.subtotal_cents),
        }
        for row in rows
    ]


def _payment_methods(tenant_id: int, period: ReportPeriod) -> list[dict]:
    rows = db.session.query(
        Sale.payment_method,
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).filter(
        Sale.tenant_id == tenant_id,
        Sale.is_return.is_(False),
        Sale.created_at >= period.start,
        Sale.created_at < period.end_exclusive,
    ).group_by(Sale.payment_method).order_by(
        func.count(Sale.id).desc(), Sale.payment_method.asc()
    ).all()

    return [
        {"payment_method": row.payment_method, "count": int(row.count), "total_cents": int(row.total_cents)}
        for row in rows
    ]


def _by_operator(tenant_id: int, period: ReportPeriod) -> list[dict]:
    rows = db.session.query(
        User.id.label("user_id"),
        User.name.label("name"),
        func.count(Sale.id).label("count"),
        func.coalesce(func.sum(Sale.total_cents), 0).label("total_cents"),
    ).select_from(Sale).join(User, Sale.user_id == User.id).filter(
        Sale.tenant_id == tenant_id,
        Sale.created_at >= period.start,
        Sale.created_at < period.end_exclusive,
    ).group_by(User.id, User.name).order_by(
        func.sum(Sale.total_cents).desc(), User.name.asc()
    ).all()

    return [
        {"user_id": row.user_id, "name": row.name, "count": int(row.count), "total_cents": int(row.total_cents)}
        for row in rows
    ]


def _catalog_counts(tenant_id: int) -> dict:
    active = db.session.query(func.count(Product.id)).filter(
        Product.tenant_id == tenant_id,
        Product.is_active.is_(True),
    )
    low = active.filter(Product.stock <= Product.min_stock)
    return {"active_products": int(active.scalar() or 0), "low_stock_products": int(low.scalar() or 0)}


def tenant_statistics(
    tenant_id: int | None,
    period=None,
    start_date=None,
    end_date=None,
    *,
    today: date | None = None,
) -> dict:
    """
    Statistics for one tenant over a period.

    Raises:
        NoTenantAssigned: unscoped context (super admin without a tenant)
        ValidationError: unknown period, bad dates, range over 365 days
    """
    tenant_id = require_tenant(tenant_id)
    report_period = resolve_period(period, start_date, end_date, today=today)

    sales = _totals(tenant_id, report_period, returns=False)
    returns = _totals(tenant_id, report_period, returns=True)
    daily = _daily(tenant_id, report_period)
    payment_methods = _payment_methods(tenant_id, report_period)
    net_total = sales["total_cents"] + returns["total_cents"]

    return {
        "tenant_id": tenant_id,
        "period": report_period.to_dict(),
        "sales": sales,
        "returns": returns,
        "net_total_cents": net_total,
        "daily": daily,
        "days_with_sales": len(daily),
        "average_daily_cents": (net_total // len(daily)) if daily else 0,
        "top_products": _top_products(tenant_id, report_period),
        "payment_methods": payment_methods,
        "top_payment_method": payment_methods[0] if payment_methods else None,
        "by_operator": _by_operator(tenant_id, report_period),
        **_catalog_counts(tenant_id),
    }


def business_statistics(tenant_id: int, period=None, start_date=None, end_date=None, *, today: date | None = None) -> dict:
    """Super admin view of any active tenant; inactive tenants are not found."""
    tenant = get_tenant(tenant_id)
    if not tenant.is_active:
        raise ResourceNotFound("Tenant", tenant_id)

    result = tenant_statistics(tenant.id, period, start_date, end_date, today=today)
    result["tenant"] = {"id": tenant.id, "name": tenant.name}
    return result
