# tests/test_api.py
"""End-to-end tests through the HTTP API on an in-memory database."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
import pytest
from unittest.mock import patch
from fastapi import FastAPI
from fastapi.testclient import TestClient
from doorcount.config import settings
from doorcount.main import APIKeyMiddleware

API = "/api/v1"


def scan_payload(dob="1990-01-15", id_number="D1234567"):
    return json.dumps({
        "idNumber": id_number, "issuingState": "TX", "dob": dob,
        "expirationDate": "2099-01-01", "firstName": "Jane", "lastName": "Doe",
    })


@pytest.fixture
def venue(client):
    assert client.post(f"{API}/businesses", json={"id": "biz-1", "name": "Night Owl Group"}).status_code == 200
    assert client.post(f"{API}/venues", json={"id": "v-1", "business_id": "biz-1", "name": "Downtown"}).status_code == 200
    assert client.post(f"{API}/areas", json={"id": "a-1", "venue_id": "v-1", "name": "Main", "capacity": 10}).status_code == 200
    return client


class TestHealth:
    def test_health(self, client):
        res = client.get(f"{API}/health")
        assert res.status_code == 200
        body = res.json()
        assert body["database"] == "ok"
        assert body["areas_tracked"] == 0
        assert body["identity_salt"] == "configured"

    def test_areas_tracked_counts_live_snapshots(self, venue):
        venue.post(f"{API}/occupancy/delta", json={"business_id": "biz-1", "venue_id": "v-1", "area_id": "a-1", "delta": 1})
        assert venue.get(f"{API}/health").json()["areas_tracked"] == 1


class TestAPIKey:
    @pytest.fixture
    def guarded(self):
        app = FastAPI()
        app.add_middleware(APIKeyMiddleware)

        @app.get(f"{API}/health")
        def health():
            return {"status": "ok"}

        @app.get(f"{API}/occupancy")
        def occupancy():
            return []

        with patch.object(settings, "API_KEY", "s3cret"):
            yield TestClient(app)

    def test_missing_key_rejected(self, guarded):
        assert guarded.get(f"{API}/occupancy").status_code == 401

    def test_wrong_key_rejected(self, guarded):
        assert guarded.get(f"{API}/occupancy", headers={"X-API-Key": "nope"}).status_code == 401

    def test_header_or_query_param(self, guarded):
        assert guarded.get(f"{API}/occupancy", headers={"X-API-Key": "s3cret"}).status_code == 200
        assert guarded.get(f"{API}/occupancy", params={"api_key": "s3cret"}).status_code == 200

    def test_health_is_open(self, guarded):
        assert guarded.get(f"{API}/health").status_code == 200

    def test_preflight_is_not_challenged(self, guarded):
        res = guarded.options(f"{API}/occupancy", headers={
            "Origin": "http://tablet.local", "Access-Control-Request-Method": "GET",
        })
        assert res.status_code != 401


class TestDirectory:
    def test_duplicate_business(self, venue):
        res = venue.post(f"{API}/businesses", json={"id": "biz-1", "name": "Again"})
        assert res.status_code == 400

    def test_venue_for_unknown_business(self, client):
        res = client.post(f"{API}/venues", json={"id": "v-1", "business_id": "nope", "name": "X"})
        assert res.status_code == 404

    def test_area_inherits_business(self, venue):
        areas = venue.get(f"{API}/areas", params={"venue_id": "v-1"}).json()
        assert len(areas) == 1
        assert areas[0]["business_id"] == "biz-1"
        assert areas[0]["current_occupancy"] == 0
        assert areas[0]["is_full"] is False


class TestScans:
    def test_accepted_scan(self, venue):
        res = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1", "area_id": "a-1"})
        assert res.status_code == 200
        body = res.json()
        assert body["outcome"] == "ACCEPTED"
        assert body["reason"] is None
        assert body["data"]["dob"] == "1990-01-15"
        assert body["data"]["issuing_state"] == "TX"
        assert body["current_occupancy"] == 1
        assert body["warnings"] == []

    def test_denial_is_a_normal_response(self, venue):
        res = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(dob="2015-01-01"), "venue_id": "v-1"})
        assert res.status_code == 200
        assert res.json()["outcome"] == "DENIED"
        assert res.json()["reason"] == "UNDERAGE"

    def test_invalid_payload(self, venue):
        res = venue.post(f"{API}/scans", json={"raw_payload": "not an id", "venue_id": "v-1"})
        body = res.json()
        assert body["reason"] == "INVALID_FORMAT"
        assert body["scan_id"] is None
        assert venue.get(f"{API}/scans", params={"business_id": "biz-1"}).json() == []

    def test_unknown_venue(self, venue):
        res = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-404"})
        assert res.status_code == 404

    def test_scan_ledger_does_not_expose_token(self, venue):
        venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"})
        scans = venue.get(f"{API}/scans", params={"business_id": "biz-1"}).json()
        assert len(scans) == 1
        assert "identity_token" not in scans[0]

    def test_area_of_another_venue_is_404(self, venue):
        venue.post(f"{API}/venues", json={"id": "v-2", "business_id": "biz-1", "name": "Uptown"})
        venue.post(f"{API}/areas", json={"id": "a-2", "venue_id": "v-2", "name": "Bar", "capacity": 10})

        res = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1", "area_id": "a-2"})
        assert res.status_code == 404
        assert venue.get(f"{API}/occupancy/a-2", params={"business_id": "biz-1"}).json()["current_occupancy"] == 0
        assert venue.get(f"{API}/scans", params={"business_id": "biz-1"}).json() == []


class TestBans:
    def test_ban_from_scan_then_denied(self, venue):
        scan = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"}).json()
        res = venue.post(f"{API}/bans", json={"scan_id": scan["scan_id"], "reason_code": "FIGHT", "notes": "brawl"})
        assert res.status_code == 200
        assert res.json()["venue_id"] is None

        again = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"}).json()
        assert again["reason"] == "BANNED"
        assert again["ban_details"] == {"reason": "FIGHT", "notes": "brawl", "period": "Permanent"}

    def test_manual_ban_and_revoke(self, venue):
        res = venue.post(f"{API}/bans", json={
            "manual_identity": {"state": "tx", "id_number": "D1234567", "dob": "1990-01-15"},
            "business_id": "biz-1", "reason_code": "THEFT",
        })
        ban_id = res.json()["id"]
        denied = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"}).json()
        assert denied["reason"] == "BANNED"

        revoked = venue.put(f"{API}/bans/{ban_id}/revoke", json={"revoked_by": "manager-1"})
        assert revoked.status_code == 200
        assert revoked.json()["active"] is False
        accepted = venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"}).json()
        assert accepted["outcome"] == "ACCEPTED"

    def test_both_targets_rejected(self, venue):
        res = venue.post(f"{API}/bans", json={
            "scan_id": 1, "manual_identity": {"state": "TX", "id_number": "X", "dob": "1990-01-15"},
            "business_id": "biz-1", "reason_code": "FIGHT",
        })
        assert res.status_code == 422

    def test_dated_ban_needs_end_date(self, venue):
        res = venue.post(f"{API}/bans", json={"scan_id": 1, "reason_code": "FIGHT", "duration": "DATED"})
        assert res.status_code == 422

    def test_ban_from_unknown_scan(self, venue):
        res = venue.post(f"{API}/bans", json={"scan_id": 999, "reason_code": "FIGHT"})
        assert res.status_code == 404

    def test_revoke_unknown(self, venue):
        assert venue.put(f"{API}/bans/999/revoke").status_code == 404


class TestOccupancy:
    def delta(self, client, delta):
        return client.post(f"{API}/occupancy/delta", json={
            "business_id": "biz-1", "venue_id": "v-1", "area_id": "a-1", "delta": delta,
        })

    def test_delta_and_read(self, venue):
        assert self.delta(venue, 3).json()["current_occupancy"] == 3
        assert self.delta(venue, -5).json()["current_occupancy"] == 0
        res = venue.get(f"{API}/occupancy/a-1", params={"business_id": "biz-1"})
        assert res.json() == {"area_id": "a-1", "current_occupancy": 0}

    def test_unknown_area_reads_zero(self, venue):
        res = venue.get(f"{API}/occupancy/nowhere", params={"business_id": "biz-1"})
        assert res.json()["current_occupancy"] == 0

    def test_absolute(self, venue):
        res = venue.put(f"{API}/occupancy/a-1/absolute", json={"male": 3, "female": 2})
        assert res.json()["current_occupancy"] == 5
        events = venue.get(f"{API}/occupancy/events", params={"business_id": "biz-1"}).json()
        assert [(e["delta"], e["event_type"]) for e in events] == [(5, "adjustment")]

    def test_absolute_negative_rejected(self, venue):
        assert venue.put(f"{API}/occupancy/a-1/absolute", json={"male": -1, "female": 2}).status_code == 422

    def test_absolute_unknown_area(self, venue):
        assert venue.put(f"{API}/occupancy/zz/absolute", json={"male": 1, "female": 2}).status_code == 404

    def test_reset_and_rebuild(self, venue):
        self.delta(venue, 7)
        res = venue.post(f"{API}/occupancy/reset", json={"business_id": "biz-1", "scope": "VENUE", "target_id": "v-1"})
        assert res.json() == {"results": [{"area_id": "a-1", "success": True}]}

        rebuilt = venue.post(f"{API}/occupancy/a-1/rebuild").json()
        assert rebuilt["rebuilt"] == 0
        assert rebuilt["drift"] == 0
        assert rebuilt["event_count"] == 2

    def test_full_area(self, venue):
        self.delta(venue, 10)
        area = venue.get(f"{API}/areas", params={"venue_id": "v-1"}).json()[0]
        assert area["current_occupancy"] == 10
        assert area["occupancy_percent"] == 100.0
        assert area["is_full"] is True

    def test_area_of_another_business_is_404(self, venue):
        self.delta(venue, 4)
        venue.post(f"{API}/businesses", json={"id": "biz-2", "name": "Other Group"})
        venue.post(f"{API}/venues", json={"id": "v-9", "business_id": "biz-2", "name": "Elsewhere"})

        res = venue.post(f"{API}/occupancy/delta", json={
            "business_id": "biz-2", "venue_id": "v-9", "area_id": "a-1", "delta": -4,
        })
        assert res.status_code == 404
        assert venue.get(f"{API}/occupancy/a-1", params={"business_id": "biz-1"}).json()["current_occupancy"] == 4

    def test_reset_of_unknown_area_fails(self, venue):
        res = venue.post(f"{API}/occupancy/reset", json={"business_id": "biz-1", "scope": "AREA", "target_id": "zz"})
        assert res.json() == {"results": [{"area_id": "zz", "success": False}]}


class TestReports:
    def test_aggregate_empty_day(self, venue):
        res = venue.post(f"{API}/reports/aggregate", json={"business_id": "biz-1", "date": "2020-01-01"})
        assert res.status_code == 200
        body = res.json()
        assert body["date"] == "2020-01-01"
        assert body["metrics"] == {"total_entries": 0, "total_exits": 0, "peak_occupancy": 0, "closing_occupancy": 0}
        assert len(body["hourly_breakdown"]) == 24

    def test_scan_summary(self, venue):
        venue.post(f"{API}/scans", json={"raw_payload": scan_payload(), "venue_id": "v-1"})
        venue.post(f"{API}/scans", json={"raw_payload": scan_payload(dob="2015-01-01"), "venue_id": "v-1"})
        body = venue.get(f"{API}/reports/scans", params={"business_id": "biz-1"}).json()
        assert body["total_scans"] == 2
        assert body["accepted"] == 1
        assert body["denial_reasons"] == {"UNDERAGE": 1}
