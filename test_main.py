# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Patrol Scheduling Service: API Tests
======================================
Run:  pytest test_main.py -v
The database is an in-memory SQLite engine configured in conftest.py.
"""
from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from main import app

client = TestClient(app)

DAY = "2026-01-10"


# ── Helpers ──────────────────────────────────────────────────────────────
def _staff(name="Catcher", contact=None):
    r = client.post("/api/v1/staff", json={"display_name": name, "contact_number": contact})
    assert r.status_code == 201
    return r.json()["id"]


def _incident(status="verified", title="Stray dog near market"):
    r = client.post("/api/v1/incidents", json={"title": title, "location": "Market St"})
    assert r.status_code == 201
    iid = r.json()["id"]
    if status != "pending":
        r = client.patch(f"/api/v1/incidents/{iid}/review", json={"status": status})
        assert r.status_code == 200
    return iid


def _create_group(incident_id, staff_ids, date=DAY, time="10:00:00", notes=None):
    return client.post("/api/v1/patrol-groups", json={
        "incident_id": incident_id, "staff_ids": staff_ids,
        "date": date, "time": time, "notes": notes,
    })


def _group(incident_id, staff_ids, **kwargs):
    r = _create_group(incident_id, staff_ids, **kwargs)
    assert r.status_code == 201, r.text
    return r.json()


def _set_status(group_id, status):
    return client.put(f"/api/v1/patrol-groups/{group_id}", json={"status": status})


def _incident_status(incident_id):
    return client.get(f"/api/v1/incidents/{incident_id}").json()["status"]


# ═══════════════════════════════════════════════════════════════════════════
# HEALTH & METRICS
# ═══════════════════════════════════════════════════════════════════════════
class TestHealth:
    def test_health_ok(self):
        r = client.get("/health")
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "ok"
        assert data["service"] == "patrol-scheduling"
        assert "timestamp" in data

    def test_readiness_ok(self):
        r = client.get("/health/ready")
        assert r.status_code == 200
        assert r.json()["database"] == "connected"

    def test_readiness_fails_when_db_down(self):
        repo = MagicMock()
        repo.verify_connection.side_effect = Exception("boom")
        with patch("patrol_service.controllers.system_controller.get_incident_repo",
                   return_value=repo):
            r = client.get("/health/ready")
        assert r.status_code == 503

    def test_metrics_endpoint(self):
        r = client.get("/metrics")
        assert r.status_code == 200
        assert "patrol_groups_created_total" in r.text
        assert "patrol_schedule_conflicts_total" in r.text

    def test_request_id_propagated(self):
        r = client.get("/health", headers={"X-Request-ID": "my-req-42"})
        assert r.headers["X-Request-ID"] == "my-req-42"

    def test_request_id_generated(self):
        r = client.get("/health")
        assert len(r.headers.get("X-Request-ID", "")) > 0


# ═══════════════════════════════════════════════════════════════════════════
# INCIDENTS
# ═══════════════════════════════════════════════════════════════════════════
class TestIncidents:
    def test_create_incident_is_pending(self):
        r = client.post("/api/v1/incidents", json={"title": "Injured cat"})
        assert r.status_code == 201
        d = r.json()
        assert d["status"] == "pending"
        assert d["reviewed_by"] is None

    def test_create_incident_requires_title(self):
        r = client.post("/api/v1/incidents", json={"title": ""})
        assert r.status_code == 422

    def test_get_incident_not_found(self):
        r = client.get("/api/v1/incidents/9999")
        assert r.status_code == 404
        assert r.json()["error"] == "not_found"

    def test_list_incidents_filters_by_status(self):
        _incident(status="pending")
        _incident(status="verified")
        _incident(status="verified")
        r = client.get("/api/v1/incidents", params={"status": "verified"})
        assert r.status_code == 200
        d = r.json()
        assert d["total"] == 2
        assert all(i["status"] == "verified" for i in d["incidents"])

    def test_list_incidents_pagination(self):
        for _ in range(3):
            _incident(status="pending")
        r = client.get("/api/v1/incidents", params={"page": 2, "per_page": 2})
        d = r.json()
        assert d["total"] == 3
        assert len(d["incidents"]) == 1

    def test_review_verifies_pending_incident(self):
        iid = _incident(status="pending")
        r = client.patch(f"/api/v1/incidents/{iid}/review",
                         json={"status": "Verified", "reviewed_by": "admin"})
        assert r.status_code == 200
        assert r.json()["status"] == "verified"
        assert r.json()["reviewed_by"] == "admin"

    def test_review_rejects_illegal_transition(self):
        iid = _incident(status="rejected")
        r = client.patch(f"/api/v1/incidents/{iid}/review", json={"status": "verified"})
        assert r.status_code == 400
        assert "Cannot transition" in r.json()["detail"]

    def test_review_rejects_unknown_status(self):
        iid = _incident(status="pending")
        r = client.patch(f"/api/v1/incidents/{iid}/review", json={"status": "resolved"})
        assert r.status_code == 422

    def test_review_blocked_once_patrol_exists(self):
        iid = _incident()
        _group(iid, [_staff()])
        r = client.patch(f"/api/v1/incidents/{iid}/review", json={"status": "rejected"})
        assert r.status_code == 409
        assert r.json()["error"] == "invalid_state"
        assert _incident_status(iid) == "in_progress"

    def test_incident_detail_lists_patrol_groups(self):
        iid = _incident()
        g = _group(iid, [_staff()])
        r = client.get(f"/api/v1/incidents/{iid}")
        assert [p["id"] for p in r.json()["patrol_groups"]] == [g["id"]]

    def test_incident_patrol_groups_endpoint(self):
        iid = _incident()
        _group(iid, [_staff("A")])
        _group(iid, [_staff("B")], time="15:00:00")
        r = client.get(f"/api/v1/incidents/{iid}/patrol-groups")
        assert r.status_code == 200
        assert len(r.json()) == 2

    def test_incident_patrol_groups_unknown_incident(self):
        r = client.get("/api/v1/incidents/9999/patrol-groups")
        assert r.status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# STAFF DIRECTORY
# ═══════════════════════════════════════════════════════════════════════════
class TestStaff:
    def test_create_staff_member_active(self):
        r = client.post("/api/v1/staff", json={"display_name": "Juan", "contact_number": "0917"})
        assert r.status_code == 201
        assert r.json()["active"] is True

    def test_list_staff_filters_active(self):
        a = _staff("A")
        _staff("B")
        client.patch(f"/api/v1/staff/{a}", json={"active": False})
        r = client.get("/api/v1/staff", params={"active": "true"})
        assert [s["display_name"] for s in r.json()] == ["B"]

    def test_get_staff_not_found(self):
        assert client.get("/api/v1/staff/9999").status_code == 404

    def test_update_staff_member(self):
        sid = _staff("Old name")
        r = client.patch(f"/api/v1/staff/{sid}", json={"display_name": "New name"})
        assert r.status_code == 200
        assert r.json()["display_name"] == "New name"

    def test_update_unknown_staff(self):
        assert client.patch("/api/v1/staff/9999", json={"active": False}).status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# POST /api/v1/patrol-groups
# ═══════════════════════════════════════════════════════════════════════════
class TestCreatePatrolGroup:
    def test_create_success_promotes_incident(self):
        iid = _incident()
        s1, s2 = _staff("A"), _staff("B")
        r = _create_group(iid, [s2, s1], notes="bring net")
        assert r.status_code == 201
        d = r.json()
        assert d["status"] == "scheduled"
        assert d["staff_ids"] == sorted([s1, s2])
        assert d["incident_status"] == "in_progress"
        assert d["notes"] == "bring net"
        assert _incident_status(iid) == "in_progress"

    def test_one_record_per_group(self):
        iid = _incident()
        _group(iid, [_staff("A"), _staff("B"), _staff("C")])
        assert len(client.get("/api/v1/patrol-groups").json()) == 1

    def test_duplicate_staff_ids_collapse(self):
        iid = _incident()
        s1 = _staff()
        d = _group(iid, [s1, s1])
        assert d["staff_ids"] == [s1]

    def test_empty_staff_rejected(self):
        iid = _incident()
        r = _create_group(iid, [])
        assert r.status_code == 400
        assert r.json()["field"] == "staff_ids"

    def test_pending_incident_rejected(self):
        iid = _incident(status="pending")
        r = _create_group(iid, [_staff()])
        assert r.status_code == 400
        assert r.json()["field"] == "incident_id"
        assert _incident_status(iid) == "pending"

    def test_rejected_incident_rejected(self):
        iid = _incident(status="rejected")
        assert _create_group(iid, [_staff()]).status_code == 400

    def test_unknown_incident_rejected(self):
        r = _create_group(9999, [_staff()])
        assert r.status_code == 400

    def test_unknown_staff_rejected(self):
        iid = _incident()
        r = _create_group(iid, [9999])
        assert r.status_code == 400
        assert "Unknown staff" in r.json()["detail"]

    def test_inactive_staff_rejected(self):
        iid = _incident()
        sid = _staff()
        client.patch(f"/api/v1/staff/{sid}", json={"active": False})
        r = _create_group(iid, [sid])
        assert r.status_code == 400
        assert "Inactive" in r.json()["detail"]

    def test_missing_date_is_schema_error(self):
        iid = _incident()
        r = client.post("/api/v1/patrol-groups", json={"incident_id": iid, "staff_ids": [1]})
        assert r.status_code == 422

    def test_overlapping_staff_conflict(self):
        """Scenario A: staff 1 cannot be in two patrols 30 minutes apart."""
        s1, s2, s3 = _staff("1"), _staff("2"), _staff("3")
        i7, i9 = _incident(), _incident()
        g = _group(i7, [s1, s2], time="10:00:00")
        r = _create_group(i9, [s1, s3], time="10:30:00")
        assert r.status_code == 409
        body = r.json()
        assert body["error"] == "schedule_conflict"
        assert body["conflicts"] == [{"staff_id": s1, "group_id": g["id"]}]
        # nothing written, incident untouched
        assert len(client.get("/api/v1/patrol-groups").json()) == 1
        assert _incident_status(i9) == "verified"

    def test_conflict_lists_every_offending_member(self):
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1, s2])
        r = _create_group(_incident(), [s1, s2], time="11:00:00")
        assert r.status_code == 409
        assert r.json()["conflicts"] == [
            {"staff_id": s1, "group_id": g["id"]},
            {"staff_id": s2, "group_id": g["id"]},
        ]

    def test_same_incident_disjoint_staff_no_conflict(self):
        """Scenario B: a second dispatch to the same incident with other staff."""
        i7 = _incident()
        _group(i7, [_staff("1"), _staff("2")], time="10:00:00")
        r = _create_group(i7, [_staff("5"), _staff("6")], time="10:00:00")
        assert r.status_code == 201
        assert _incident_status(i7) == "in_progress"

    def test_different_date_no_conflict(self):
        s1 = _staff()
        _group(_incident(), [s1], date="2026-01-10")
        assert _create_group(_incident(), [s1], date="2026-01-11").status_code == 201

    def test_slot_boundary_touching_is_not_conflict(self):
        s1 = _staff()
        _group(_incident(), [s1], time="10:00:00")
        assert _create_group(_incident(), [s1], time="12:00:00").status_code == 201

    def test_inside_slot_is_conflict(self):
        s1 = _staff()
        _group(_incident(), [s1], time="10:00:00")
        assert _create_group(_incident(), [s1], time="11:59:00").status_code == 409

    def test_terminal_group_frees_staff(self):
        s1 = _staff()
        g = _group(_incident(), [s1])
        _set_status(g["id"], "cancelled")
        assert _create_group(_incident(), [s1]).status_code == 201


# ═══════════════════════════════════════════════════════════════════════════
# POST /api/v1/patrol-groups/conflict-check
# ═══════════════════════════════════════════════════════════════════════════
class TestConflictCheck:
    def test_reports_conflict(self):
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1])
        r = client.post("/api/v1/patrol-groups/conflict-check", json={
            "staff_ids": [s1, s2], "date": DAY, "time": "10:30:00",
        })
        assert r.status_code == 200
        assert r.json() == {"has_conflict": True,
                            "conflicts": [{"staff_id": s1, "group_id": g["id"]}]}

    def test_reports_no_conflict(self):
        s1, s2 = _staff("1"), _staff("2")
        _group(_incident(), [s1])
        r = client.post("/api/v1/patrol-groups/conflict-check", json={
            "staff_ids": [s2], "date": DAY, "time": "10:30:00",
        })
        assert r.json() == {"has_conflict": False, "conflicts": []}

    def test_idempotent(self):
        s1 = _staff()
        _group(_incident(), [s1])
        payload = {"staff_ids": [s1], "date": DAY, "time": "11:00:00"}
        first = client.post("/api/v1/patrol-groups/conflict-check", json=payload).json()
        second = client.post("/api/v1/patrol-groups/conflict-check", json=payload).json()
        assert first == second

    def test_exclude_group(self):
        s1 = _staff()
        g = _group(_incident(), [s1])
        r = client.post("/api/v1/patrol-groups/conflict-check", json={
            "staff_ids": [s1], "date": DAY, "time": "10:00:00", "exclude_group_id": g["id"],
        })
        assert r.json()["has_conflict"] is False

    def test_does_not_write(self):
        s1 = _staff()
        client.post("/api/v1/patrol-groups/conflict-check", json={
            "staff_ids": [s1], "date": DAY, "time": "10:00:00",
        })
        assert client.get("/api/v1/patrol-groups").json() == []

    def test_empty_staff_rejected(self):
        r = client.post("/api/v1/patrol-groups/conflict-check", json={
            "staff_ids": [], "date": DAY, "time": "10:00:00",
        })
        assert r.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# PUT /api/v1/patrol-groups/{id}
# ═══════════════════════════════════════════════════════════════════════════
class TestStatusTransitions:
    def test_full_lifecycle_resolves_incident(self):
        """Scenario C: completing the only group resolves the incident."""
        i7 = _incident()
        g = _group(i7, [_staff("1"), _staff("2")])
        r = _set_status(g["id"], "in_progress")
        assert r.status_code == 200
        assert r.json()["status"] == "in_progress"
        assert _incident_status(i7) == "in_progress"
        r = _set_status(g["id"], "completed")
        assert r.status_code == 200
        assert r.json()["incident_status"] == "resolved"
        assert _incident_status(i7) == "resolved"

    def test_completion_waits_for_other_active_group(self):
        i7 = _incident()
        g1 = _group(i7, [_staff("1")])
        g2 = _group(i7, [_staff("2")])
        _set_status(g1["id"], "in_progress")
        _set_status(g1["id"], "completed")
        assert _incident_status(i7) == "in_progress"
        _set_status(g2["id"], "in_progress")
        _set_status(g2["id"], "completed")
        assert _incident_status(i7) == "resolved"

    def test_cancelling_only_group_reverts_to_verified(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        r = _set_status(g["id"], "cancelled")
        assert r.status_code == 200
        assert _incident_status(i7) == "verified"

    def test_cancelling_one_of_two_keeps_in_progress(self):
        i7 = _incident()
        g1 = _group(i7, [_staff("1")])
        _group(i7, [_staff("2")])
        _set_status(g1["id"], "cancelled")
        assert _incident_status(i7) == "in_progress"

    def test_in_progress_can_be_cancelled(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        _set_status(g["id"], "in_progress")
        assert _set_status(g["id"], "cancelled").status_code == 200
        assert _incident_status(i7) == "verified"

    def test_backward_transition_rejected(self):
        """Scenario E: completed -> scheduled fails and nothing changes."""
        g = _group(_incident(), [_staff()])
        _set_status(g["id"], "in_progress")
        _set_status(g["id"], "completed")
        r = _set_status(g["id"], "scheduled")
        assert r.status_code == 400
        assert r.json()["error"] == "validation_error"
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").json()["status"] == "completed"

    def test_skip_transition_rejected(self):
        g = _group(_incident(), [_staff()])
        r = _set_status(g["id"], "completed")
        assert r.status_code == 400
        assert "Allowed" in r.json()["detail"]

    def test_terminal_state_is_immutable(self):
        g = _group(_incident(), [_staff()])
        _set_status(g["id"], "cancelled")
        r = _set_status(g["id"], "in_progress")
        assert r.status_code == 400
        assert "terminal" in r.json()["detail"]

    def test_status_spelling_normalised(self):
        g = _group(_incident(), [_staff()])
        assert _set_status(g["id"], "In Progress").json()["status"] == "in_progress"

    def test_unknown_status_is_schema_error(self):
        g = _group(_incident(), [_staff()])
        assert _set_status(g["id"], "paused").status_code == 422

    def test_unknown_group(self):
        assert _set_status(9999, "in_progress").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# STAFF MEMBERSHIP
# ═══════════════════════════════════════════════════════════════════════════
class TestStaffMembership:
    def test_remove_until_last_member(self):
        """Scenario D: second removal on a two-member group hits the floor."""
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1, s2])
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}/staff/{s1}")
        assert r.status_code == 200
        assert r.json()["remaining_staff_ids"] == [s2]
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}/staff/{s2}")
        assert r.status_code == 409
        body = r.json()
        assert body["error"] == "last_staff_member"
        assert body["message"] == "cannot remove the last staff member"
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").json()["staff_ids"] == [s2]

    def test_remove_non_member(self):
        g = _group(_incident(), [_staff("1"), _staff("2")])
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}/staff/9999")
        assert r.status_code == 400

    def test_remove_from_terminal_group(self):
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1, s2])
        _set_status(g["id"], "cancelled")
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}/staff/{s1}")
        assert r.status_code == 400

    def test_removed_member_is_free_again(self):
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1, s2])
        client.delete(f"/api/v1/patrol-groups/{g['id']}/staff/{s1}")
        assert _create_group(_incident(), [s1]).status_code == 201

    def test_add_member(self):
        s1, s2 = _staff("1"), _staff("2")
        g = _group(_incident(), [s1])
        r = client.post(f"/api/v1/patrol-groups/{g['id']}/staff", json={"staff_id": s2})
        assert r.status_code == 200
        assert r.json()["staff_ids"] == sorted([s1, s2])

    def test_add_member_conflict(self):
        s1, s2 = _staff("1"), _staff("2")
        other = _group(_incident(), [s2], time="10:30:00")
        g = _group(_incident(), [s1], time="10:00:00")
        r = client.post(f"/api/v1/patrol-groups/{g['id']}/staff", json={"staff_id": s2})
        assert r.status_code == 409
        assert r.json()["conflicts"] == [{"staff_id": s2, "group_id": other["id"]}]
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").json()["staff_ids"] == [s1]

    def test_add_existing_member(self):
        s1 = _staff()
        g = _group(_incident(), [s1])
        r = client.post(f"/api/v1/patrol-groups/{g['id']}/staff", json={"staff_id": s1})
        assert r.status_code == 400

    def test_add_to_terminal_group(self):
        g = _group(_incident(), [_staff("1")])
        _set_status(g["id"], "cancelled")
        r = client.post(f"/api/v1/patrol-groups/{g['id']}/staff", json={"staff_id": _staff("2")})
        assert r.status_code == 400

    def test_add_inactive_member(self):
        g = _group(_incident(), [_staff("1")])
        s2 = _staff("2")
        client.patch(f"/api/v1/staff/{s2}", json={"active": False})
        r = client.post(f"/api/v1/patrol-groups/{g['id']}/staff", json={"staff_id": s2})
        assert r.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
# READ / DELETE / TIMELINE
# ═══════════════════════════════════════════════════════════════════════════
class TestPatrolGroupReads:
    def test_get_group_has_live_incident_status(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").json()["incident_status"] == "in_progress"
        _set_status(g["id"], "cancelled")
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").json()["incident_status"] == "verified"

    def test_get_unknown_group(self):
        r = client.get("/api/v1/patrol-groups/9999")
        assert r.status_code == 404

    def test_list_filters(self):
        i7, i9 = _incident(), _incident()
        g1 = _group(i7, [_staff("1")])
        _group(i9, [_staff("2")], date="2026-01-11")
        _set_status(g1["id"], "in_progress")
        assert [g["id"] for g in client.get(
            "/api/v1/patrol-groups", params={"status": "in_progress"}).json()] == [g1["id"]]
        assert len(client.get("/api/v1/patrol-groups", params={"incident_id": i9}).json()) == 1
        assert len(client.get("/api/v1/patrol-groups", params={"date": "2026-01-11"}).json()) == 1

    def test_timeline_records_lifecycle(self):
        g = _group(_incident(), [_staff()])
        _set_status(g["id"], "in_progress")
        _set_status(g["id"], "completed")
        r = client.get(f"/api/v1/patrol-groups/{g['id']}/timeline")
        assert r.status_code == 200
        types = [e["event_type"] for e in r.json()["timeline"]]
        assert types == [
            "created", "incident_status_synced",
            "status_changed", "status_changed", "incident_status_synced",
        ]

    def test_timeline_unknown_group(self):
        assert client.get("/api/v1/patrol-groups/9999/timeline").status_code == 404


class TestDeleteGroup:
    def test_delete_active_group_refused(self):
        g = _group(_incident(), [_staff()])
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}")
        assert r.status_code == 409
        assert r.json()["error"] == "invalid_state"

    def test_delete_terminal_group(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        _set_status(g["id"], "in_progress")
        _set_status(g["id"], "completed")
        r = client.delete(f"/api/v1/patrol-groups/{g['id']}")
        assert r.status_code == 200
        assert r.json() == {"status": "deleted", "id": g["id"]}
        assert client.get(f"/api/v1/patrol-groups/{g['id']}").status_code == 404
        assert _incident_status(i7) == "resolved"

    def test_delete_unknown_group(self):
        assert client.delete("/api/v1/patrol-groups/9999").status_code == 404

    def test_review_stays_blocked_after_group_deleted(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        _set_status(g["id"], "cancelled")
        assert client.delete(f"/api/v1/patrol-groups/{g['id']}").status_code == 200
        assert client.get(f"/api/v1/incidents/{i7}/patrol-groups").json() == []
        r = client.patch(f"/api/v1/incidents/{i7}/review", json={"status": "rejected"})
        assert r.status_code == 409
        assert r.json()["error"] == "invalid_state"
        assert _incident_status(i7) == "verified"

    def test_deleted_history_still_allows_new_dispatch(self):
        i7 = _incident()
        g = _group(i7, [_staff("1")])
        _set_status(g["id"], "cancelled")
        client.delete(f"/api/v1/patrol-groups/{g['id']}")
        assert _create_group(i7, [_staff("2")]).status_code == 201
        assert _incident_status(i7) == "in_progress"


# ═══════════════════════════════════════════════════════════════════════════
# PUT /api/v1/patrol-groups/{id}: reschedule
# ═══════════════════════════════════════════════════════════════════════════
class TestReschedule:
    def test_move_to_free_slot(self):
        s1 = _staff()
        g = _group(_incident(), [s1], time="10:00:00")
        r = client.put(f"/api/v1/patrol-groups/{g['id']}",
                       json={"date": "2026-01-11", "time": "14:00:00"})
        assert r.status_code == 200
        d = r.json()
        assert d["date"] == "2026-01-11"
        assert d["time"] == "14:00:00"
        assert d["status"] == "scheduled"
        # the old slot is free again
        assert _create_group(_incident(), [s1], time="10:00:00").status_code == 201

    def test_move_into_conflicting_slot(self):
        s1, s2 = _staff("1"), _staff("2")
        other = _group(_incident(), [s2], time="14:00:00")
        g = _group(_incident(), [s1, s2], date="2026-01-12", time="10:00:00")
        r = client.put(f"/api/v1/patrol-groups/{g['id']}",
                       json={"date": DAY, "time": "13:00:00"})
        assert r.status_code == 409
        assert r.json()["conflicts"] == [{"staff_id": s2, "group_id": other["id"]}]
        d = client.get(f"/api/v1/patrol-groups/{g['id']}").json()
        assert (d["date"], d["time"]) == ("2026-01-12", "10:00:00")

    def test_shift_within_own_slot(self):
        g = _group(_incident(), [_staff()], time="10:00:00")
        r = client.put(f"/api/v1/patrol-groups/{g['id']}", json={"time": "10:30:00"})
        assert r.status_code == 200
        assert r.json()["time"] == "10:30:00"

    def test_terminal_group_cannot_move(self):
        g = _group(_incident(), [_staff()])
        _set_status(g["id"], "cancelled")
        r = client.put(f"/api/v1/patrol-groups/{g['id']}", json={"time": "15:00:00"})
        assert r.status_code == 400

    def test_notes_only(self):
        g = _group(_incident(), [_staff()], notes="bring net")
        r = client.put(f"/api/v1/patrol-groups/{g['id']}", json={"notes": None})
        assert r.status_code == 200
        assert r.json()["notes"] is None
        assert r.json()["time"] == "10:00:00"

    def test_move_and_start_together(self):
        i7 = _incident()
        g = _group(i7, [_staff()])
        r = client.put(f"/api/v1/patrol-groups/{g['id']}",
                       json={"time": "16:00:00", "status": "in_progress"})
        assert r.status_code == 200
        assert r.json()["status"] == "in_progress"
        assert r.json()["time"] == "16:00:00"

    def test_empty_body_is_schema_error(self):
        g = _group(_incident(), [_staff()])
        assert client.put(f"/api/v1/patrol-groups/{g['id']}", json={}).status_code == 422

    def test_timeline_records_move(self):
        g = _group(_incident(), [_staff()])
        client.put(f"/api/v1/patrol-groups/{g['id']}", json={"time": "15:00:00"})
        events = client.get(f"/api/v1/patrol-groups/{g['id']}/timeline").json()["timeline"]
        moved = [e for e in events if e["event_type"] == "rescheduled"]
        assert moved[0]["detail"]["to"] == {"date": DAY, "time": "15:00:00"}


class TestGroupStaffNames:
    def test_group_lists_member_names(self):
        s1, s2 = _staff("Ana"), _staff("Ben")
        g = _group(_incident(), [s2, s1])
        assert g["staff"] == [
            {"id": s1, "display_name": "Ana"},
            {"id": s2, "display_name": "Ben"},
        ]
        listed = client.get("/api/v1/patrol-groups").json()[0]
        assert [s["display_name"] for s in listed["staff"]] == ["Ana", "Ben"]

    def test_dispatch_flag_on_incident(self):
        i7 = _incident()
        assert client.get(f"/api/v1/incidents/{i7}").json()["dispatched"] is False
        _group(i7, [_staff()])
        assert client.get(f"/api/v1/incidents/{i7}").json()["dispatched"] is True
