from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.reports import ReportRow, ReportSummary
from ..services.reporting import (
    build_report_rows,
    filter_report_rows,
    render_report_csv,
    report_filename,
    resolve_date_range,
    summarize_reports,
)

router = APIRouter(prefix="/api/v1/reports", tags=["reports"], dependencies=[Depends(require_api_key)])


class ReportQuery:
    """Shared query-string filters for the report endpoints."""

    def __init__(
        self,
        search: str | None = None,
        status: str | None = None,
        delivery_mode: str | None = Query(default=None, alias="deliveryMode"),
        range_kind: str = Query(default="all", alias="range"),
        date_from: str | None = Query(default=None, alias="dateFrom"),
        date_to: str | None = Query(default=None, alias="dateTo"),
    ) -> None:
        self.search = search
        self.status = status
        self.delivery_mode = delivery_mode
        self.date_range = resolve_date_range(range_kind, date_from=date_from, date_to=date_to)

    def apply(self, rows: list[ReportRow]) -> list[ReportRow]:
        return filter_report_rows(
            rows,
            search=self.search,
            status=self.status,
            delivery_mode=self.delivery_mode,
            date_from=self.date_range.date_from,
            date_to=self.date_range.date_to,
        )


@router.get("", response_model=list[ReportRow])
def api_rows(query: ReportQuery = Depends(), db: Session = Depends(get_db)):
    return query.apply(build_report_rows(db))


@router.get("/summary", response_model=ReportSummary)
def api_summary(query: ReportQuery = Depends(), db: Session = Depends(get_db)):
    # Totals follow the period only, like the dashboard cards.
    rows = filter_report_rows(
        build_report_rows(db),
        date_from=query.date_range.date_from,
        date_to=query.date_range.date_to,
    )
    return summarize_reports(rows, date_range=query.date_range)


@router.get("/export.csv")
def api_export_csv(query: ReportQuery = Depends(), db: Session = Depends(get_db)):
    content = render_report_csv(query.apply(build_report_rows(db)))
    headers = {"Content-Disposition": f'attachment; filename="{report_filename()}"'}
    return Response(content=content, media_type="text/csv; charset=utf-8", headers=headers)
