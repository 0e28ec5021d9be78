"""
Analytics Service.

Handles data aggregation for dashboards.
Focused on READ-ONLY operations. Date windows filter on the work's
transaction_date, both ends inclusive.
"""

from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, case, extract

from backend.app.models.client import Client
from backend.app.models.work_transaction import WorkTransaction
from backend.app.models.ledger_enums import PaymentStatus, WorkType
from backend.app.services.work_store import work_type_condition
from backend.app.schemas.analytics import (
    WorkStats,
    OverviewStats,
    PaymentBreakdown,
    ClientBalanceBreakdown,
    ClientPerformance,
    ClientAnalytics,
    StatusAmounts,
    PaymentStatusBreakdown,
    MonthlyCollection,
    OutstandingByWorkType,
    PaymentAnalytics,
)

DUE = WorkTransaction.total_price - WorkTransaction.paid_amount


def _date_window(date_from: Optional[date], date_to: Optional[date]) -> list:
    conditions = []
    if date_from is not None:
        conditions.append(WorkTransaction.transaction_date >= date_from)
    if date_to is not None:
        conditions.append(WorkTransaction.transaction_date <= date_to)
    return conditions


def _efficiency(paid: int, value: int) -> float:
    return round(paid * 100 / value, 2) if value else 0.0


class AnalyticsService:

    @staticmethod
    async def get_work_stats(db: AsyncSession) -> WorkStats:
        """Get totals and payment status counts across all work transactions."""

        # 1. Money totals
        totals_query = select(
            func.count(WorkTransaction.id),
            func.coalesce(func.sum(WorkTransaction.paid_amount), 0),
            func.coalesce(func.sum(DUE), 0),
            func.coalesce(func.sum(WorkTransaction.total_price), 0),
        )
        total_works, total_income, total_due, total_value = (await db.execute(totals_query)).one()

        # 2. Counts per payment status
        status_query = select(
            WorkTransaction.payment_status, func.count(WorkTransaction.id)
        ).group_by(WorkTransaction.payment_status)
        status_counts = {
            PaymentStatus(status): count
            for status, count in (await db.execute(status_query)).all()
        }

        return WorkStats(
            total_works=total_works,
            total_income=int(total_income),
            total_due=int(total_due),
            total_value=int(total_value),
            paid_works=status_counts.get(PaymentStatus.PAID, 0),
            partial_works=status_counts.get(PaymentStatus.PARTIAL, 0),
            unpaid_works=status_counts.get(PaymentStatus.UNPAID, 0),
        )

    @staticmethod
    async def get_overview_stats(
        db: AsyncSession,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> OverviewStats:
        """
        Headline numbers for the dashboard.

        Work totals respect the date window. Client counts and the balance
        breakdown describe all clients as they stand now.
        """
        window = _date_window(date_from, date_to)

        # 1. Work totals in the window
        totals_query = select(
            func.count(WorkTransaction.id),
            func.coalesce(func.sum(WorkTransaction.paid_amount), 0),
            func.coalesce(func.sum(DUE), 0),
            func.coalesce(func.sum(WorkTransaction.total_price), 0),
        ).where(*window)
        total_works, total_income, total_due, total_value = (await db.execute(totals_query)).one()

        # 2. Payment status counts in the window
        status_query = select(
            WorkTransaction.payment_status, func.count(WorkTransaction.id)
        ).where(*window).group_by(WorkTransaction.payment_status)
        status_counts = {
            PaymentStatus(status): count
            for status, count in (await db.execute(status_query)).all()
        }

        # 3. Clients by sign of the stored balance
        clients_query = select(
            func.count(Client.id),
            func.coalesce(func.sum(case((Client.balance > 0, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Client.balance < 0, 1), else_=0)), 0),
            func.coalesce(func.sum(case((Client.balance == 0, 1), else_=0)), 0),
        )
        total_clients, positive, negative, zero = (await db.execute(clients_query)).one()

        return OverviewStats(
            total_clients=total_clients,
            total_works=total_works,
            total_income=int(total_income),
            total_due=int(total_due),
            total_value=int(total_value),
            payment_breakdown=PaymentBreakdown(
                paid=status_counts.get(PaymentStatus.PAID, 0),
                partial=status_counts.get(PaymentStatus.PARTIAL, 0),
                unpaid=status_counts.get(PaymentStatus.UNPAID, 0),
            ),
            client_balance_breakdown=ClientBalanceBreakdown(
                positive=int(positive),
                negative=int(negative),
                zero=int(zero),
            ),
            date_from=date_from,
            date_to=date_to,
        )

    @staticmethod
    async def get_client_analytics(
        db: AsyncSession,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        limit: int = 10,
    ) -> ClientAnalytics:
        """Per-client income, due and value in the window, best paying first."""
        stmt = select(
            Client.id,
            Client.name,
            Client.balance,
            func.count(WorkTransaction.id).label("work_count"),
            func.coalesce(func.sum(WorkTransaction.paid_amount), 0).label("total_income"),
            func.coalesce(func.sum(DUE), 0).label("total_due"),
            func.coalesce(func.sum(WorkTransaction.total_price), 0).label("total_value"),
        ).join(WorkTransaction, WorkTransaction.client_id == Client.id)\
         .where(*_date_window(date_from, date_to))\
         .group_by(Client.id, Client.name, Client.balance)\
         .order_by(func.sum(WorkTransaction.paid_amount).desc(), Client.id)

        results = await db.execute(stmt)

        data = []
        for row in results:
            data.append(ClientPerformance(
                client_id=row.id,
                client_name=row.name,
                total_income=int(row.total_income),
                total_due=int(row.total_due),
                total_value=int(row.total_value),
                work_count=row.work_count,
                current_balance=row.balance,
            ))

        return ClientAnalytics(
            top_clients=data[:limit],
            all_client_data=data,
            total_active_clients=len(data),
        )

    @staticmethod
    async def get_payment_analytics(
        db: AsyncSession,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> PaymentAnalytics:
        """Collection efficiency, status amounts, monthly trend and outstanding by work type."""
        window = _date_window(date_from, date_to)

        # 1. Amounts per payment status
        status_query = select(
            WorkTransaction.payment_status,
            func.count(WorkTransaction.id),
            func.coalesce(func.sum(WorkTransaction.total_price), 0),
            func.coalesce(func.sum(WorkTransaction.paid_amount), 0),
        ).where(*window).group_by(WorkTransaction.payment_status)
        by_status = {
            PaymentStatus(status): StatusAmounts(count=count, value=int(value), paid=int(paid))
            for status, count, value, paid in (await db.execute(status_query)).all()
        }
        empty = StatusAmounts(count=0, value=0, paid=0)
        breakdown = PaymentStatusBreakdown(
            paid=by_status.get(PaymentStatus.PAID, empty),
            partial=by_status.get(PaymentStatus.PARTIAL, empty),
            unpaid=by_status.get(PaymentStatus.UNPAID, empty),
        )
        total_value = sum(s.value for s in by_status.values())
        total_paid = sum(s.paid for s in by_status.values())

        # 2. Monthly collection, oldest month first
        year = extract("year", WorkTransaction.transaction_date)
        month = extract("month", WorkTransaction.transaction_date)
        monthly_query = select(
            year.label("year"),
            month.label("month"),
            func.count(WorkTransaction.id).label("work_count"),
            func.coalesce(func.sum(WorkTransaction.total_price), 0).label("total_value"),
            func.coalesce(func.sum(WorkTransaction.paid_amount), 0).label("total_paid"),
        ).where(*window).group_by(year, month).order_by(year, month)

        monthly: List[MonthlyCollection] = []
        for row in await db.execute(monthly_query):
            value, paid = int(row.total_value), int(row.total_paid)
            monthly.append(MonthlyCollection(
                month=f"{int(row.year):04d}-{int(row.month):02d}",
                total_value=value,
                total_paid=paid,
                total_due=value - paid,
                efficiency=_efficiency(paid, value),
                work_count=row.work_count,
            ))

        # 3. Outstanding per work type; a work tagged with several types
        # counts toward each of them
        dialect_name = db.get_bind().dialect.name
        outstanding: List[OutstandingByWorkType] = []
        for work_type in WorkType:
            due_query = select(
                func.count(WorkTransaction.id),
                func.coalesce(func.sum(DUE), 0),
            ).where(
                *window,
                WorkTransaction.total_price > WorkTransaction.paid_amount,
                work_type_condition(dialect_name, work_type),
            )
            count, due = (await db.execute(due_query)).one()
            if count:
                outstanding.append(OutstandingByWorkType(
                    work_type=work_type.value,
                    total_due=int(due),
                    work_count=count,
                    average_due=round(int(due) / count, 2),
                ))
        outstanding.sort(key=lambda item: item.total_due, reverse=True)

        return PaymentAnalytics(
            total_value=total_value,
            total_paid=total_paid,
            total_due=total_value - total_paid,
            collection_efficiency=_efficiency(total_paid, total_value),
            payment_status_breakdown=breakdown,
            monthly_collection=monthly,
            outstanding_by_work_type=outstanding,
        )
