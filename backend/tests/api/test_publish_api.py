import base64

import pytest

PASSCODE = "reef-passcode"
URL = "/api/v1/publish-article"


def _article(**overrides):
    data = {
        "title": "Jellyfish blooms and sea surface temperature",
        "authors": "P. Medusa, R. Polyp",
        "orcidIds": ["0000-0001-9181-0292"],
        "type": "Short Communication",
        "publicationDate": "2026-03-01",
        "volume": "1",
        "issue": "2",
        "abstract": "Bloom frequency tracked against satellite SST anomalies for a decade.",
    }
    data.update(overrides)
    return data


def _post(api, action, article=None, passcode=PASSCODE, headers=None):
    body = {"action": action, "passcode": passcode}
    if article is not None:
        body["article"] = article
    return api.post(URL, json=body, headers=headers or {})


@pytest.mark.unit
def test_wrong_or_missing_passcode_is_rejected(api):
    for passcode in (None, "", "guess"):
        resp = _post(api, "get-next-doi", passcode=passcode)
        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid passcode"}


@pytest.mark.unit
def test_editor_session_works_without_passcode(api, fake_db, editor_token):
    resp = _post(api, "get-next-doi", passcode=None, headers={"Authorization": f"Bearer {editor_token}"})
    assert resp.status_code == 200


@pytest.mark.unit
def test_author_session_still_needs_passcode(api, fake_db, author_token):
    headers = {"Authorization": f"Bearer {author_token}"}
    assert _post(api, "get-next-doi", passcode=None, headers=headers).status_code == 401
    assert _post(api, "get-next-doi", headers=headers).status_code == 200


@pytest.mark.unit
def test_stale_token_does_not_block_passcode(api, expired_token):
    resp = _post(api, "get-next-doi", headers={"Authorization": f"Bearer {expired_token}"})
    assert resp.status_code == 200


@pytest.mark.unit
def test_unknown_action(api):
    resp = _post(api, "delete-everything")
    assert resp.status_code == 400
    assert resp.json() == {"error": "Unknown action"}


@pytest.mark.unit
def test_get_next_doi_after_static_catalog(api):
    resp = _post(api, "get-next-doi")
    assert resp.status_code == 200
    assert resp.json() == {"doi": "MNJ-2026-004", "nextNum": 4}


@pytest.mark.unit
def test_publish_allocates_sequential_dois(api, fake_db):
    first = _post(api, "publish", _article())
    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["article"]["doi"] == "MNJ-2026-004"
    assert body["article"]["resolver_url"] == "https://www.marinenotesjournal.com/doi/MNJ-2026-004"

    second = _post(api, "publish", _article(title="Second jellyfish bloom report"))
    assert second.json()["article"]["doi"] == "MNJ-2026-005"
    assert _post(api, "get-next-doi").json()["doi"] == "MNJ-2026-006"


@pytest.mark.unit
def test_publish_validation_errors_return_400(api, fake_db):
    resp = _post(api, "publish", _article(title="abc"))
    assert resp.status_code == 400
    assert resp.json() == {"error": "Title must be between 5 and 500 characters"}

    resp = _post(api, "publish", _article(orcidIds=["123-456"]))
    assert resp.status_code == 400
    assert "ORCID" in resp.json()["error"]
    assert fake_db.rows("articles") == []


@pytest.mark.unit
def test_publish_with_existing_doi_conflicts(api):
    resp = _post(api, "publish", _article(doi="MNJ-2026-001"))
    assert resp.status_code == 409
    assert resp.json() == {"error": "DOI already exists"}


@pytest.mark.unit
def test_update_rules(api, fake_db):
    created = _post(api, "publish", _article()).json()["article"]

    resp = _post(api, "update", _article(id=created["id"], title="Jellyfish blooms revisited"))
    assert resp.status_code == 200
    assert resp.json()["article"]["title"] == "Jellyfish blooms revisited"
    assert resp.json()["article"]["doi"] == "MNJ-2026-004"

    assert _post(api, "update", _article(id=-1)).status_code == 400
    assert _post(api, "update", _article(id=9999)).status_code == 404
    assert _post(api, "update", _article()).status_code == 400


@pytest.mark.unit
def test_list_articles_merges_catalog(api):
    _post(api, "publish", _article())
    resp = _post(api, "list-articles")
    assert resp.status_code == 200
    articles = resp.json()["articles"]
    assert [a["doi"] for a in articles] == ["MNJ-2026-001", "MNJ-2026-002", "MNJ-2026-003", "MNJ-2026-004"]
    assert articles[-1]["source"] == "dynamic"


def _pdf_b64(content=b"%PDF-1.4\n%test\n"):
    return base64.b64encode(content).decode("ascii")


@pytest.mark.unit
def test_upload_pdf_returns_public_url(api, fake_db):
    resp = _post(api, "upload-pdf", {"fileName": "2026/MNJ-2026-004", "fileData": _pdf_b64()})
    assert resp.status_code == 200
    url = resp.json()["url"]
    assert url.endswith("/article-pdfs/2026/MNJ-2026-004.pdf")
    assert fake_db.storage.objects["article-pdfs"]["2026/MNJ-2026-004.pdf"].startswith(b"%PDF-")


@pytest.mark.unit
def test_upload_pdf_accepts_data_url(api):
    data = "data:application/pdf;base64," + _pdf_b64()
    assert _post(api, "upload-pdf", {"fileName": "a.pdf", "fileData": data}).status_code == 200


@pytest.mark.unit
@pytest.mark.parametrize(
    "article,status,error",
    [
        ({"fileName": "a.pdf"}, 400, "fileName and fileData are required"),
        ({"fileName": "../etc/passwd", "fileData": _pdf_b64()}, 400, "Invalid file name"),
        ({"fileName": "a.pdf", "fileData": "not base64!!"}, 400, "Invalid PDF data"),
        ({"fileName": "a.pdf", "fileData": _pdf_b64(b"PK\x03\x04 zip")}, 400, "File is not a PDF"),
        ({"fileName": "a.pdf", "fileData": _pdf_b64(b"%PDF-" + b"0" * (1024 * 1024 + 1))}, 413, "PDF exceeds 1 MB limit"),
    ],
)
def test_upload_pdf_rejections(api, article, status, error):
    resp = _post(api, "upload-pdf", article)
    assert resp.status_code == status
    assert resp.json() == {"error": error}


@pytest.mark.unit
def test_upload_pdf_derives_path_from_doi(api, fake_db):
    article = {"doi": "mnj-2026-004", "title": "Jellyfish Blooms & SST!", "fileData": _pdf_b64()}
    resp = _post(api, "upload-pdf", article)
    assert resp.status_code == 200
    assert resp.json()["url"].endswith("/article-pdfs/2026/MNJ-2026-004-jellyfish-blooms-sst.pdf")

    resp = _post(api, "upload-pdf", {"fileData": _pdf_b64()})
    assert resp.status_code == 400
    assert resp.json() == {"error": "fileName and fileData are required"}


@pytest.mark.unit
def test_upload_pdf_goes_to_public_bucket(api, fake_db):
    fake_db.storage.create_bucket("manuscripts", options={"public": False})
    fake_db.storage.create_bucket("article-pdfs", options={"public": False})

    resp = _post(api, "upload-pdf", {"fileName": "2026/MNJ-2026-004.pdf", "fileData": _pdf_b64()})
    assert resp.status_code == 200
    assert "/object/public/article-pdfs/" in resp.json()["url"]
    assert fake_db.storage.buckets["article-pdfs"]["public"] is True
    assert fake_db.storage.buckets["manuscripts"]["public"] is False
    assert "2026/MNJ-2026-004.pdf" not in fake_db.storage.objects.get("manuscripts", {})
