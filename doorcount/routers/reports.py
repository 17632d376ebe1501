"""Traffic and scan reports, computed on demand from the ledgers."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date, datetime
from typing import Optional
from doorcount.database import get_db
from doorcount.schemas.report import (
    AggregateReportOut, AggregateRequest, AreaTrafficOut, HourlyTraffic, ReportMetrics, TrafficOut,
)
from doorcount.schemas.scan import ScanSummaryOut
from doorcount.services.aggregation_service import aggregate, day_window, traffic_by_area
from doorcount.services.scan_ledger import summarize_scans

router = APIRouter()


@router.post("/reports/aggregate", response_model=AggregateReportOut, summary="Daily traffic report")
def aggregate_day(body: AggregateRequest, db: Session = Depends(get_db)):
    """
    Entries, exits, peak and closing occupancy for one UTC day, plus a
    24-hour breakdown. A day with no events returns zeros.
    """
    start, end = day_window(body.date)
    report = aggregate(db, body.business_id, start, end)
    return AggregateReportOut(
        date=body.date.isoformat(),
        generated_at=datetime.utcnow().isoformat(),
        metrics=ReportMetrics(
            total_entries=report.total_entries,
            total_exits=report.total_exits,
            peak_occupancy=report.peak_occupancy,
            closing_occupancy=report.closing_occupancy,
        ),
        hourly_breakdown=[
            HourlyTraffic(hour=b.hour, entries=b.entries, exits=b.exits, peak=b.peak)
            for b in report.hourly_breakdown
        ],
    )


@router.get("/reports/traffic", response_model=TrafficOut, summary="In/out totals per area")
def get_traffic(business_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None,
                venue_id: Optional[str] = None, area_id: Optional[str] = None,
                db: Session = Depends(get_db)):
    """Defaults to today (UTC) so far."""
    if start is None:
        start = day_window(datetime.utcnow().date())[0]
    if end is None:
        end = datetime.utcnow()
    stats = traffic_by_area(db, business_id, start, end, venue_id=venue_id, area_id=area_id)
    return TrafficOut(
        start=start.isoformat(), end=end.isoformat(), venue_id=venue_id,
        stats=[AreaTrafficOut(**s) for s in stats],
    )


@router.get("/reports/scans", response_model=ScanSummaryOut, summary="Scan outcomes for a day")
def get_scan_summary(business_id: str, target_date: Optional[date] = Query(None, alias="date"),
                     venue_id: Optional[str] = None,
                     db: Session = Depends(get_db)):
    target = target_date or datetime.utcnow().date()
    start, end = day_window(target)
    return ScanSummaryOut(date=target.isoformat(), **summarize_scans(db, business_id, start, end, venue_id=venue_id))
