from pydantic import BaseModel
from datetime import date as Date
from typing import Optional


class AggregateRequest(BaseModel):
    business_id: str
    date: Date


class ReportMetrics(BaseModel):
    total_entries: int
    total_exits: int
    peak_occupancy: int
    closing_occupancy: int


class HourlyTraffic(BaseModel):
    hour: int
    entries: int
    exits: int
    peak: int


class AggregateReportOut(BaseModel):
    date: str
    generated_at: str
    metrics: ReportMetrics
    hourly_breakdown: list[HourlyTraffic]


class AreaTrafficOut(BaseModel):
    area_id: str
    total_in: int
    total_out: int


class TrafficOut(BaseModel):
    start: str
    end: str
    venue_id: Optional[str] = None
    stats: list[AreaTrafficOut]
