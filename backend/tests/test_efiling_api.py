from __future__ import annotations

import os
from datetime import timedelta

import httpx
import pytest

from hrdesk.errors import AppError
from hrdesk.services.efiling_service import EFilingService
from hrdesk.utils import now_utc


PDF = ("memo.pdf", b"%PDF-1.4 quarterly memo", "application/pdf")


async def _send(client: httpx.AsyncClient, headers, recipient_id, *, file=PDF, note="please review"):
    return await client.post(
        "/api/efiling/send",
        headers=headers,
        files={"file": file},
        data={"recipient_id": str(recipient_id), "note": note},
    )


def _stored_files(upload_dir) -> list:
    if not upload_dir.exists():
        return []
    return sorted(p.name for p in upload_dir.iterdir())


@pytest.mark.anyio
async def test_send_starts_a_thread(async_client: httpx.AsyncClient, make_user, upload_dir) -> None:
    sender, s_headers = await make_user("sender")
    recipient, r_headers = await make_user("recipient")

    resp = await _send(async_client, s_headers, recipient["_id"])
    assert resp.status_code == 201, resp.text
    transfer = resp.json()["transfer"]
    assert transfer["thread_id"] == transfer["id"]
    assert transfer["is_forwarded"] is False
    assert transfer["original_name"] == "memo.pdf"
    assert transfer["file_size"] == len(PDF[1])
    assert transfer["sender"]["username"] == "sender"
    assert transfer["recipient"]["username"] == "recipient"
    assert "file_path" in transfer
    assert len(_stored_files(upload_dir)) == 1

    inbox = await async_client.get("/api/efiling/inbox", headers=r_headers)
    body = inbox.json()
    assert [t["id"] for t in body["transfers"]] == [transfer["id"]]
    assert body["unread_count"] == 1
    assert body["pagination"]["total"] == 1

    count = await async_client.get("/api/efiling/unread-count", headers=r_headers)
    assert count.json()["count"] == 1

    sent = await async_client.get("/api/efiling/sent", headers=s_headers)
    assert [t["id"] for t in sent.json()["transfers"]] == [transfer["id"]]


@pytest.mark.anyio
async def test_forward_chain_shares_thread(async_client: httpx.AsyncClient, make_user) -> None:
    _, a_headers = await make_user("alpha")
    bravo, b_headers = await make_user("bravo")
    charlie, c_headers = await make_user("charlie")
    _, outsider_headers = await make_user("outsider")
    _, admin_headers = await make_user("root", role="ADMIN")

    original = (await _send(async_client, a_headers, bravo["_id"])).json()["transfer"]

    fwd = await async_client.post(
        "/api/efiling/forward",
        headers=b_headers,
        json={"original_transfer_id": original["id"], "recipient_id": str(charlie["_id"]), "note": "fyi"},
    )
    assert fwd.status_code == 201, fwd.text
    forwarded = fwd.json()["transfer"]
    assert forwarded["is_forwarded"] is True
    assert forwarded["parent_transfer_id"] == original["id"]
    assert forwarded["thread_id"] == original["id"]
    assert forwarded["file_path"] == original["file_path"]

    track = await async_client.get(f"/api/efiling/track/{forwarded['id']}", headers=c_headers)
    assert track.status_code == 200
    assert [t["id"] for t in track.json()["tracking"]] == [original["id"], forwarded["id"]]

    denied = await async_client.get(f"/api/efiling/track/{original['id']}", headers=outsider_headers)
    assert denied.status_code == 403
    assert denied.json()["code"] == "track_forbidden"

    assert (await async_client.get(f"/api/efiling/track/{original['id']}", headers=admin_headers)).status_code == 200

    not_mine = await async_client.post(
        "/api/efiling/forward",
        headers=outsider_headers,
        json={"original_transfer_id": original["id"], "recipient_id": str(charlie["_id"])},
    )
    assert not_mine.status_code == 403


@pytest.mark.anyio
async def test_self_send_leaves_no_blob(async_client: httpx.AsyncClient, make_user, upload_dir) -> None:
    me, headers = await make_user()

    resp = await _send(async_client, headers, me["_id"])
    assert resp.status_code == 400
    assert resp.json()["code"] == "self_send"
    assert _stored_files(upload_dir) == []


@pytest.mark.anyio
async def test_rejects_disallowed_type(async_client: httpx.AsyncClient, make_user, upload_dir) -> None:
    _, headers = await make_user()
    recipient, _ = await make_user()

    resp = await _send(async_client, headers, recipient["_id"], file=("setup.exe", b"MZ", "application/x-msdownload"))
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_file_type"
    assert _stored_files(upload_dir) == []


@pytest.mark.anyio
async def test_send_requires_file_and_recipient(async_client: httpx.AsyncClient, make_user) -> None:
    _, headers = await make_user()

    resp = await async_client.post("/api/efiling/send", headers=headers, data={"recipient_id": "x"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "file_required"

    resp = await async_client.post("/api/efiling/send", headers=headers, files={"file": PDF})
    assert resp.status_code == 400
    assert resp.json()["code"] == "recipient_required"


@pytest.mark.anyio
async def test_delete_window_and_blob_cleanup(async_client: httpx.AsyncClient, test_db, make_user, upload_dir) -> None:
    sender, s_headers = await make_user()
    recipient, r_headers = await make_user()

    transfer = (await _send(async_client, s_headers, recipient["_id"])).json()["transfer"]
    service = EFilingService(test_db)

    with pytest.raises(AppError) as exc:
        await service.delete(sender, transfer["id"], now=now_utc() + timedelta(hours=25))
    assert exc.value.code == "delete_window_elapsed"

    denied = await async_client.delete(f"/api/efiling/{transfer['id']}", headers=r_headers)
    assert denied.status_code == 404

    await service.delete(sender, transfer["id"], now=now_utc() + timedelta(hours=1))
    assert await test_db.file_transfers.count_documents({}) == 0
    assert not os.path.exists(transfer["file_path"])
    assert await test_db.audit_logs.count_documents({"action": "efiling.deleted"}) == 1


@pytest.mark.anyio
async def test_deleting_original_keeps_forwarded_blob(async_client: httpx.AsyncClient, make_user) -> None:
    _, a_headers = await make_user()
    bravo, b_headers = await make_user()
    charlie, c_headers = await make_user()

    original = (await _send(async_client, a_headers, bravo["_id"])).json()["transfer"]
    forwarded = (
        await async_client.post(
            "/api/efiling/forward",
            headers=b_headers,
            json={"original_transfer_id": original["id"], "recipient_id": str(charlie["_id"])},
        )
    ).json()["transfer"]

    resp = await async_client.delete(f"/api/efiling/{original['id']}", headers=a_headers)
    assert resp.status_code == 200
    assert os.path.exists(original["file_path"])

    download = await async_client.get(f"/api/efiling/download/{forwarded['id']}", headers=c_headers)
    assert download.status_code == 200
    assert download.content == PDF[1]


@pytest.mark.anyio
async def test_mark_read_is_recipient_only(async_client: httpx.AsyncClient, make_user) -> None:
    _, s_headers = await make_user()
    recipient, r_headers = await make_user()

    transfer = (await _send(async_client, s_headers, recipient["_id"])).json()["transfer"]

    assert (await async_client.patch(f"/api/efiling/{transfer['id']}/read", headers=s_headers)).status_code == 404

    resp = await async_client.patch(f"/api/efiling/{transfer['id']}/read", headers=r_headers)
    assert resp.status_code == 200
    assert resp.json()["transfer"]["is_read"] is True
    assert resp.json()["transfer"]["status"] == "read"

    count = await async_client.get("/api/efiling/unread-count", headers=r_headers)
    assert count.json()["count"] == 0


@pytest.mark.anyio
async def test_download_marks_read_for_recipient(async_client: httpx.AsyncClient, test_db, make_user) -> None:
    sender, s_headers = await make_user()
    recipient, r_headers = await make_user()
    _, outsider_headers = await make_user()

    transfer = (await _send(async_client, s_headers, recipient["_id"])).json()["transfer"]

    assert (await async_client.get(f"/api/efiling/download/{transfer['id']}", headers=outsider_headers)).status_code == 404

    by_sender = await async_client.get(f"/api/efiling/download/{transfer['id']}", headers=s_headers)
    assert by_sender.status_code == 200
    stored = await test_db.file_transfers.find_one({"sender_id": sender["_id"]})
    assert stored["is_read"] is False

    by_recipient = await async_client.get(f"/api/efiling/download/{transfer['id']}", headers=r_headers)
    assert by_recipient.status_code == 200
    assert "memo.pdf" in by_recipient.headers["content-disposition"]
    stored = await test_db.file_transfers.find_one({"sender_id": sender["_id"]})
    assert stored["is_read"] is True


@pytest.mark.anyio
async def test_history_filters_by_direction(async_client: httpx.AsyncClient, make_user) -> None:
    alpha, a_headers = await make_user()
    bravo, b_headers = await make_user()

    out = (await _send(async_client, a_headers, bravo["_id"])).json()["transfer"]
    back = (await _send(async_client, b_headers, alpha["_id"])).json()["transfer"]

    every = await async_client.get("/api/efiling/history", headers=a_headers)
    assert {t["id"] for t in every.json()["transfers"]} == {out["id"], back["id"]}

    sent = await async_client.get("/api/efiling/history", headers=a_headers, params={"filter": "sent"})
    assert [t["id"] for t in sent.json()["transfers"]] == [out["id"]]

    received = await async_client.get("/api/efiling/history", headers=a_headers, params={"filter": "received"})
    assert [t["id"] for t in received.json()["transfers"]] == [back["id"]]


@pytest.mark.anyio
async def test_long_forward_chain_keeps_one_thread(async_client: httpx.AsyncClient, make_user) -> None:
    people = [await make_user(f"hop{i}") for i in range(5)]

    first = (await _send(async_client, people[0][1], people[1][0]["_id"])).json()["transfer"]
    chain = [first]
    for hop in range(1, 4):
        resp = await async_client.post(
            "/api/efiling/forward",
            headers=people[hop][1],
            json={"original_transfer_id": chain[-1]["id"], "recipient_id": str(people[hop + 1][0]["_id"])},
        )
        assert resp.status_code == 201, resp.text
        chain.append(resp.json()["transfer"])

    assert {t["thread_id"] for t in chain} == {first["id"]}
    assert [t["parent_transfer_id"] for t in chain[1:]] == [t["id"] for t in chain[:-1]]

    expected = [t["id"] for t in chain]
    for viewer, anchor in ((people[4][1], chain[-1]), (people[2][1], chain[1])):
        track = await async_client.get(f"/api/efiling/track/{anchor['id']}", headers=viewer)
        assert track.status_code == 200
        assert [t["id"] for t in track.json()["tracking"]] == expected
