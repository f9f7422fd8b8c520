from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from hrdesk.errors import AppError
from hrdesk.services.attendance_service import AttendanceService
from hrdesk.services.leave_service import LeaveService


def _service(test_db) -> AttendanceService:
    return AttendanceService(test_db, tz_name="Asia/Kolkata", cutoff_hour=11)


@pytest.mark.anyio
async def test_late_check_in_then_short_day(test_db, make_user) -> None:
    user, _ = await make_user(first_name="Meera", last_name="Iyer")
    service = _service(test_db)

    check_in_at = datetime(2025, 3, 3, 6, 15, tzinfo=timezone.utc)  # 11:45 IST
    row = await service.check_in(user, ip="10.0.0.1", now=check_in_at)
    assert row["date"] == "2025-03-03"
    assert row["status"] == "late"
    assert row["is_late"] is True
    assert row["late_by"] == 45
    assert row["user_name"] == "Meera Iyer"

    with pytest.raises(AppError) as exc:
        await service.check_in(user, now=check_in_at + timedelta(minutes=5))
    assert exc.value.code == "already_checked_in"

    out = await service.check_out(user, now=check_in_at + timedelta(hours=3, minutes=30))
    assert out["working_hours"] == 3.5
    assert out["status"] == "half-day"

    with pytest.raises(AppError) as exc:
        await service.check_out(user, now=check_in_at + timedelta(hours=4))
    assert exc.value.code == "already_checked_out"


@pytest.mark.anyio
async def test_full_day_keeps_present(test_db, make_user) -> None:
    user, _ = await make_user()
    service = _service(test_db)
    start = datetime(2025, 3, 4, 3, 30, tzinfo=timezone.utc)  # 09:00 IST

    row = await service.check_in(user, now=start)
    assert row["status"] == "present"
    assert row["late_by"] == 0

    out = await service.check_out(user, now=start + timedelta(hours=8, minutes=20))
    assert out["working_hours"] == 8.33
    assert out["status"] == "present"


@pytest.mark.anyio
async def test_check_out_without_check_in(test_db, make_user) -> None:
    user, _ = await make_user()
    with pytest.raises(AppError) as exc:
        await _service(test_db).check_out(user, now=datetime(2025, 3, 4, 12, 0, tzinfo=timezone.utc))
    assert exc.value.code == "no_check_in"


@pytest.mark.anyio
async def test_check_in_updates_on_leave_placeholder(test_db, make_user) -> None:
    user, _ = await make_user()
    await test_db.attendance.insert_one({"user_id": user["_id"], "date": "2025-03-05", "status": "on-leave"})

    row = await _service(test_db).check_in(user, now=datetime(2025, 3, 5, 4, 0, tzinfo=timezone.utc))
    assert row["status"] == "present"
    assert await test_db.attendance.count_documents({"user_id": user["_id"]}) == 1


@pytest.mark.anyio
async def test_check_in_over_http_and_today(async_client: httpx.AsyncClient, make_user) -> None:
    _, headers = await make_user()

    resp = await async_client.post(
        "/api/attendance/check-in",
        headers=headers,
        json={"location": {"latitude": 12.97, "longitude": 77.59}},
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["attendance"]["check_in"]["location"]["latitude"] == 12.97

    again = await async_client.post("/api/attendance/check-in", headers=headers)
    assert again.status_code == 400
    body = again.json()
    assert body["success"] is False
    assert body["code"] == "already_checked_in"
    assert body["message"] == "Already checked in today"

    today = await async_client.get("/api/attendance/today", headers=headers)
    assert today.status_code == 200
    assert today.json()["attendance"]["username"]
    assert today.json()["attendance"]["designation"] == "Associate"


@pytest.mark.anyio
async def test_all_for_day_synthesizes_absentees(async_client: httpx.AsyncClient, test_db, make_user) -> None:
    present, _ = await make_user("present_one")
    absent, _ = await make_user("absent_one")
    await make_user("gone", is_active=False)
    _, ceo = await make_user("boss", role="CEO")

    await test_db.attendance.insert_one(
        {
            "user_id": present["_id"],
            "date": "2025-03-06",
            "status": "late",
            "is_late": True,
            "check_in": {"time": datetime(2025, 3, 6, 6, 0, tzinfo=timezone.utc)},
        }
    )

    resp = await async_client.get("/api/attendance/all", headers=ceo, params={"date": "2025-03-06"})
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert [r["username"] for r in body["attendance"]] == ["present_one"]
    absent_names = {u["username"] for u in body["absent_users"]}
    assert "absent_one" in absent_names
    assert "present_one" not in absent_names
    assert "gone" not in absent_names
    assert body["stats"]["present"] == 1
    assert body["stats"]["late"] == 1
    assert body["stats"]["total"] == 3


@pytest.mark.anyio
async def test_employee_cannot_view_all(async_client: httpx.AsyncClient, make_user) -> None:
    _, headers = await make_user()
    resp = await async_client.get("/api/attendance/all", headers=headers)
    assert resp.status_code == 403


@pytest.mark.anyio
async def test_my_month_stats(async_client: httpx.AsyncClient, test_db, make_user) -> None:
    user, headers = await make_user()
    await test_db.attendance.insert_many(
        [
            {"user_id": user["_id"], "date": "2025-02-03", "status": "present", "working_hours": 8.5},
            {"user_id": user["_id"], "date": "2025-02-04", "status": "late", "working_hours": 7.25},
            {"user_id": user["_id"], "date": "2025-02-05", "status": "half-day", "working_hours": 3},
            {"user_id": user["_id"], "date": "2025-03-01", "status": "present", "working_hours": 8},
        ]
    )
    resp = await async_client.get("/api/attendance/my", headers=headers, params={"month": 2, "year": 2025})
    assert resp.status_code == 200
    body = resp.json()
    assert [r["date"] for r in body["attendance"]] == ["2025-02-05", "2025-02-04", "2025-02-03"]
    assert body["stats"]["present"] == 1
    assert body["stats"]["late"] == 1
    assert body["stats"]["half_day"] == 1
    assert body["stats"]["total_working_hours"] == 18.75


@pytest.mark.anyio
async def test_short_check_out_after_same_day_leave_approval(test_db, make_user) -> None:
    user, _ = await make_user()
    manager, _ = await make_user(role="INCUBATION_MANAGER")
    service = _service(test_db)
    start = datetime(2025, 3, 10, 3, 30, tzinfo=timezone.utc)  # 09:00 IST

    await service.check_in(user, now=start)

    leaves = LeaveService(test_db)
    leave = await leaves.apply(
        user,
        {
            "leave_type": "Casual Leave",
            "start_date": "2025-03-10",
            "end_date": "2025-03-10",
            "person_in_charge": "Ravi",
            "reporting_to_id": str(manager["_id"]),
        },
    )
    await leaves.approve(str(leave["_id"]), manager)
    row = await test_db.attendance.find_one({"user_id": user["_id"], "date": "2025-03-10"})
    assert row["status"] == "on-leave"
    assert row["check_in"]["time"] is not None

    out = await service.check_out(user, now=start + timedelta(hours=2))
    assert out["status"] == "half-day"
    assert out["working_hours"] == 2.0


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("cutoff", "message", "is_late"),
    [("0", "Checked in (Late)", True), ("24", "Checked in successfully", False)],
)
async def test_check_in_message_reflects_lateness(
    async_client: httpx.AsyncClient, make_user, monkeypatch, cutoff: str, message: str, is_late: bool
) -> None:
    # cutoff 0 makes every check-in late, 24 makes none late
    monkeypatch.setenv("LATE_CUTOFF_HOUR", cutoff)
    _, headers = await make_user()

    resp = await async_client.post("/api/attendance/check-in", headers=headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["message"] == message
    assert resp.json()["attendance"]["is_late"] is is_late
