import asyncio

import pytest

FORM = {
    "title": "Sea turtle hatchling disorientation from coastal lighting",
    "manuscript_type": "field-notes",
    "abstract": "Night surveys on three nesting beaches.",
    "keywords": "turtles, light pollution",
    "corresponding_author_name": "Eleni Shore",
    "corresponding_author_email": "eleni@example.gr",
    "corresponding_author_affiliation": "Archelon",
    "corresponding_author_orcid": "0000-0001-9181-0292",
    "all_authors": "Eleni Shore, Kostas Sand",
    "cover_letter": "Thank you for considering our work.",
    "copyright_original_work": "true",
    "copyright_no_conflict": "true",
    "copyright_transfer_rights": "true",
    "copyright_creative_commons": "true",
    "copyright_signature": "Eleni Shore",
}


def _files():
    return [("files", ("turtles.pdf", b"%PDF-1.5 turtles", "application/pdf"))]


def _submit(api, token, form=None, files=None):
    return api.post(
        "/api/v1/submissions",
        data=form or FORM,
        files=_files() if files is None else files,
        headers={"Authorization": f"Bearer {token}"} if token else {},
    )


@pytest.mark.unit
def test_submit_requires_login(api):
    resp = _submit(api, None)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Not authenticated"}


@pytest.mark.unit
def test_submit_creates_pending_submission_and_notifies(api, author_token, notifier, fake_db, user_ids):
    resp = _submit(api, author_token)
    assert resp.status_code == 201
    submission = resp.json()["submission"]
    assert submission["status"] == "pending"
    assert submission["user_id"] == user_ids["author"]
    assert submission["file_paths"][0].startswith(f"submissions/{user_ids['author']}/")
    assert submission["file_paths"][0].endswith("-turtles.pdf")

    notifier.notify_submission_created.assert_called_once()
    assert notifier.notify_submission_created.call_args[0][0]["id"] == submission["id"]


@pytest.mark.unit
def test_submit_without_full_copyright_is_rejected(api, author_token, fake_db):
    form = {**FORM, "copyright_transfer_rights": "false"}
    resp = _submit(api, author_token, form=form)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Copyright agreement required"}
    assert fake_db.rows("manuscript_submissions") == []


@pytest.mark.unit
def test_submit_validates_fields(api, author_token):
    resp = _submit(api, author_token, form={**FORM, "corresponding_author_email": "not-an-email"})
    assert resp.status_code == 400
    assert "corresponding_author_email" in resp.json()["error"]

    resp = _submit(api, author_token, form={**FORM, "manuscript_type": "poem"})
    assert resp.status_code == 400


@pytest.mark.unit
def test_submit_requires_a_file(api, author_token):
    resp = _submit(api, author_token, files=[])
    assert resp.status_code == 400
    assert resp.json() == {"error": "At least one manuscript file is required"}


@pytest.mark.unit
def test_my_submissions_and_detail(api, author_token, other_editor_token):
    created = _submit(api, author_token).json()["submission"]
    headers = {"Authorization": f"Bearer {author_token}"}

    mine = api.get("/api/v1/submissions/mine", headers=headers).json()["items"]
    assert [s["id"] for s in mine] == [created["id"]]
    assert mine[0]["timeline"][0]["label"] == "Received"

    detail = api.get(f"/api/v1/submissions/{created['id']}", headers=headers)
    assert detail.status_code == 200

    other = api.get(
        f"/api/v1/submissions/{created['id']}",
        headers={"Authorization": f"Bearer {other_editor_token}"},
    )
    assert other.status_code == 404


@pytest.mark.unit
def test_track_submission(api, author_token):
    created = _submit(api, author_token).json()["submission"]

    resp = api.post(
        "/api/v1/track-submission",
        json={"submissionId": created["id"], "email": "ELENI@example.gr"},
    )
    assert resp.status_code == 200
    tracked = resp.json()["submission"]
    assert tracked["status"] == "pending"
    assert "corresponding_author_email" not in tracked

    resp = api.post("/api/v1/track-submission", json={"submissionId": created["id"], "email": "x@y.z"})
    assert resp.status_code == 404
    assert resp.json() == {"error": "Submission not found or email does not match"}

    resp = api.post("/api/v1/track-submission", json={"email": "eleni@example.gr"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Submission ID and email are required"}


@pytest.mark.unit
def test_submit_runs_storage_writes_off_the_event_loop(api, author_token, submission_service, monkeypatch):
    seen = []
    original = submission_service.create

    def create(**kwargs):
        try:
            asyncio.get_running_loop()
            seen.append("loop")
        except RuntimeError:
            seen.append("worker")
        return original(**kwargs)

    monkeypatch.setattr(submission_service, "create", create)
    assert _submit(api, author_token).status_code == 201
    assert seen == ["worker"]
