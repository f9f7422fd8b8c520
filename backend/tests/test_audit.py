from bson import ObjectId

from hrdesk.services.audit import shallow_diff


def test_diff_keeps_changed_fields_only() -> None:
    reviewer = ObjectId()
    before = {"_id": ObjectId(), "status": "pending", "reason": "trip", "reviewed_by": None}
    after = {**before, "status": "approved", "reviewed_by": reviewer, "updated_at": "now"}

    diff = shallow_diff(before, after)

    assert diff == {
        "reviewed_by": {"before": None, "after": str(reviewer)},
        "status": {"before": "pending", "after": "approved"},
    }


def test_diff_never_carries_credentials() -> None:
    before = {"role": "EMPLOYEE", "password_hash": "old", "profile": {"first_name": "A", "password": "x"}}
    after = {"role": "CEO", "password_hash": "new", "profile": {"first_name": "B", "password": "y"}}

    diff = shallow_diff(before, after)

    assert "password_hash" not in diff
    assert diff["role"] == {"before": "EMPLOYEE", "after": "CEO"}
    assert diff["profile"]["after"] == {"first_name": "B", "password": "***"}


def test_diff_truncates_long_text() -> None:
    diff = shallow_diff({"note": ""}, {"note": "x" * 5000})
    assert len(diff["note"]["after"]) == 2001
