# casedesk/services/reports.py
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from ..models import CASE_STATUSES, PAYMENT_STATUSES, is_open, utcnow
from ..storage import EntityStore

TOP_N = 10
TREND_DAYS = 30


def _top(counter: Counter, label: str) -> list[dict]:
    return [{label: key, "count": n} for key, n in counter.most_common(TOP_N)]


class ReportService:
    def __init__(self, store: EntityStore):
        self.store = store

    def statistics(self, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        cases = self.store.cases.find()
        total_customers = self.store.customers.count()

        by_status = Counter({s: 0 for s in CASE_STATUSES})
        by_status.update(c.status for c in cases)
        by_payment = Counter({s: 0 for s in PAYMENT_STATUSES})
        by_payment.update(c.payment_status for c in cases)

        stores = Counter(c.purchase_place for c in cases)
        products = Counter(c.model_number for c in cases)
        issues = Counter(c.repair_needed.strip().lower() for c in cases if c.repair_needed.strip())

        closed = [c for c in cases if c.status == "Closed"]
        avg_days = 0.0
        if closed:
            total = sum((c.updated_at - c.created_at).total_seconds() for c in closed)
            avg_days = total / len(closed) / 86400

        monthly_revenue = sum(
            c.shipping_cost or 0
            for c in cases
            if c.created_at.year == now.year and c.created_at.month == now.month
        )

        per_day = Counter(c.created_at.date() for c in cases)
        trend = []
        for offset in range(TREND_DAYS - 1, -1, -1):
            day = (now - timedelta(days=offset)).date()
            trend.append({"date": day.isoformat(), "count": per_day.get(day, 0)})

        return {
            "summary": {
                "total_cases": len(cases),
                "total_customers": total_customers,
                "open_cases": sum(1 for c in cases if is_open(c.status)),
                "closed_cases": len(closed),
                "avg_resolution_days": round(avg_days, 1),
                "monthly_revenue": round(monthly_revenue, 2),
            },
            "cases_by_status": dict(by_status),
            "cases_by_payment_status": dict(by_payment),
            "top_stores": _top(stores, "name"),
            "top_products": _top(products, "name"),
            "top_issues": _top(issues, "issue"),
            "case_trend": trend,
        }
