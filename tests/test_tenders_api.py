from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

TENDERS_URL = "/api/v1/tenders"

FORM = {
    "tenderId": "T-1",
    "organization": "Acme",
    "description": "road works",
    "dueDate": "2025-01-01",
    "price": "1000",
}


def pdf_file(name="spec.pdf", content=b"%PDF-1.7", mime_type="application/pdf"):
    return ("documents", (name, content, mime_type))


def create(client: TestClient, headers, form=None, files=None):
    return client.post(
        TENDERS_URL,
        data=form or FORM,
        files=files if files is not None else [pdf_file()],
        headers=headers,
    )


@pytest.fixture
def user_headers(auth_headers):
    return auth_headers("user-1", "user")


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers("admin-1", "admin")


def test_health_needs_no_token(client: TestClient) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_requests_without_token_are_rejected(client: TestClient) -> None:
    response = client.get(TENDERS_URL)

    assert response.status_code == 401
    assert response.json() == {"detail": "Not authenticated", "message": "Not authenticated"}


def test_expired_and_forged_tokens_are_rejected(client: TestClient, auth_headers) -> None:
    expired = client.get(TENDERS_URL, headers=auth_headers(expires_in=timedelta(seconds=-30)))
    forged = client.get(TENDERS_URL, headers={"Authorization": "Bearer not-a-jwt"})

    assert expired.status_code == 401
    assert expired.json()["detail"] == "Token expired"
    assert forged.status_code == 401
    assert forged.json()["detail"] == "Invalid token"


def test_create_tender(client: TestClient, user_headers, store) -> None:
    response = create(client, user_headers)

    assert response.status_code == 201
    content = response.json()
    assert content["tenderId"] == "T-1"
    assert content["dueDate"] == "2025-01-01"
    assert content["price"] == 1000
    assert content["status"] == "pending"
    assert content["submittedBy"] == {"id": "user-1"}
    assert content["attributes"] == []
    assert len(content["documents"]) == 1
    assert content["documents"][0]["originalName"] == "spec.pdf"
    assert content["documents"][0]["mimeType"] == "application/pdf"
    assert "createdAt" in content and "updatedAt" in content
    assert store.objects == {"tenders/1/spec.pdf": b"%PDF-1.7"}


def test_second_create_with_same_tender_id_conflicts(client: TestClient, user_headers, auth_headers) -> None:
    assert create(client, user_headers).status_code == 201

    response = create(client, auth_headers("user-2"))

    assert response.status_code == 409
    assert response.json() == {"detail": "Tender with id 'T-1' already exists", "message": "Tender with id 'T-1' already exists"}


def test_create_requires_a_document(client: TestClient, user_headers) -> None:
    response = create(client, user_headers, files=[])

    assert response.status_code == 400
    assert response.json() == {"detail": "Please upload at least one document", "message": "Please upload at least one document"}


def test_create_rejects_disallowed_file_type(client: TestClient, user_headers, store) -> None:
    response = create(client, user_headers, files=[pdf_file(), pdf_file("run.sh", b"#!/bin/sh", "text/x-shellscript")])

    assert response.status_code == 400
    assert response.json()["detail"].startswith("File type not allowed: run.sh")
    assert store.store_calls == 0


def test_create_rejects_missing_field(client: TestClient, user_headers) -> None:
    form = {k: v for k, v in FORM.items() if k != "organization"}

    response = create(client, user_headers, form=form)

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid")


def test_storage_failure_is_a_server_error_without_leftovers(client: TestClient, user_headers, store) -> None:
    store.fail_on = {2}

    response = create(client, user_headers, files=[pdf_file("a.pdf"), pdf_file("b.pdf")])

    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to upload documents", "message": "Failed to upload documents"}
    assert store.objects == {}
    assert client.get(TENDERS_URL, headers=user_headers).json()["pagination"]["total"] == 0


def test_get_tender(client: TestClient, user_headers, auth_headers) -> None:
    tender_pk = create(client, user_headers).json()["id"]

    response = client.get(f"{TENDERS_URL}/{tender_pk}", headers=auth_headers("someone-else"))

    assert response.status_code == 200
    assert response.json()["id"] == tender_pk


def test_get_unknown_tender(client: TestClient, user_headers) -> None:
    response = client.get(f"{TENDERS_URL}/does-not-exist", headers=user_headers)

    assert response.status_code == 404
    assert response.json() == {"detail": "Tender not found", "message": "Tender not found"}


def test_list_tenders_filters_and_paginates(client: TestClient, user_headers, admin_headers) -> None:
    for tender_id, organization, due_date in [
        ("T-1", "Acme", "2025-03-01"),
        ("T-2", "Globex", "2025-01-01"),
        ("T-3", "ACME Labs", "2025-02-01"),
    ]:
        form = {**FORM, "tenderId": tender_id, "organization": organization, "dueDate": due_date}
        assert create(client, user_headers, form=form).status_code == 201
    t3 = client.get(TENDERS_URL, params={"search": "T-3"}, headers=user_headers).json()["tenders"][0]
    client.patch(f"{TENDERS_URL}/{t3['id']}/status", json={"status": "approved"}, headers=admin_headers)

    response = client.get(TENDERS_URL, params={"search": "acme", "limit": 1}, headers=user_headers)
    content = response.json()
    assert response.status_code == 200
    assert [t["tenderId"] for t in content["tenders"]] == ["T-3"]
    assert content["pagination"] == {"page": 1, "limit": 1, "total": 2, "pages": 2}

    approved = client.get(TENDERS_URL, params={"status": "approved", "search": "acme"}, headers=user_headers)
    assert [t["tenderId"] for t in approved.json()["tenders"]] == ["T-3"]


def test_list_rejects_non_positive_page(client: TestClient, user_headers) -> None:
    response = client.get(TENDERS_URL, params={"page": 0}, headers=user_headers)

    assert response.status_code == 400


def test_owner_updates_tender(client: TestClient, user_headers) -> None:
    tender_pk = create(client, user_headers).json()["id"]

    response = client.put(
        f"{TENDERS_URL}/{tender_pk}",
        data={"description": "resurfacing", "attributes": '[{"key": "lot", "value": "1"}]'},
        headers=user_headers,
    )

    assert response.status_code == 200
    content = response.json()
    assert content["description"] == "resurfacing"
    assert content["organization"] == "Acme"
    assert content["attributes"] == []
    assert len(content["documents"]) == 1


def test_update_replaces_documents(client: TestClient, user_headers, store) -> None:
    tender_pk = create(client, user_headers).json()["id"]

    response = client.put(
        f"{TENDERS_URL}/{tender_pk}",
        files=[pdf_file("v2.pdf"), pdf_file("annex.pdf")],
        headers=user_headers,
    )

    assert response.status_code == 200
    assert [d["originalName"] for d in response.json()["documents"]] == ["v2.pdf", "annex.pdf"]
    assert store.removed == ["tenders/1/spec.pdf"]


def test_update_by_stranger_is_forbidden(client: TestClient, user_headers, auth_headers) -> None:
    tender_pk = create(client, user_headers).json()["id"]

    response = client.put(f"{TENDERS_URL}/{tender_pk}", data={"organization": "Mine"}, headers=auth_headers("user-2"))

    assert response.status_code == 403
    assert response.json() == {"detail": "Not authorized to update this tender", "message": "Not authorized to update this tender"}


def test_update_unknown_tender(client: TestClient, user_headers) -> None:
    response = client.put(f"{TENDERS_URL}/missing", data={"organization": "X"}, headers=user_headers)

    assert response.status_code == 404


def test_status_changes(client: TestClient, user_headers, admin_headers) -> None:
    tender_pk = create(client, user_headers).json()["id"]
    url = f"{TENDERS_URL}/{tender_pk}/status"

    assert client.patch(url, json={"status": "approved"}, headers=user_headers).status_code == 403

    for status in ("approved", "rejected", "pending", "approved"):
        response = client.patch(url, json={"status": status}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == status

    invalid = client.patch(url, json={"status": "archived"}, headers=admin_headers)
    assert invalid.status_code == 400
    assert invalid.json() == {"detail": "Invalid status value", "message": "Invalid status value"}
    assert client.get(f"{TENDERS_URL}/{tender_pk}", headers=user_headers).json()["status"] == "approved"


def test_status_change_on_unknown_tender(client: TestClient, admin_headers) -> None:
    response = client.patch(f"{TENDERS_URL}/missing/status", json={"status": "approved"}, headers=admin_headers)

    assert response.status_code == 404


def test_delete_tender(client: TestClient, user_headers, admin_headers, store) -> None:
    tender_pk = create(client, user_headers).json()["id"]

    assert client.delete(f"{TENDERS_URL}/{tender_pk}", headers=user_headers).status_code == 403

    response = client.delete(f"{TENDERS_URL}/{tender_pk}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Tender removed"}
    assert store.objects == {}
    assert client.get(f"{TENDERS_URL}/{tender_pk}", headers=user_headers).status_code == 404


def test_delete_tender_succeeds_when_storage_cleanup_fails(client: TestClient, user_headers, admin_headers, store) -> None:
    tender_pk = create(client, user_headers).json()["id"]
    store.fail_all_removes = True

    response = client.delete(f"{TENDERS_URL}/{tender_pk}", headers=admin_headers)

    assert response.status_code == 200
    assert client.get(f"{TENDERS_URL}/{tender_pk}", headers=user_headers).status_code == 404


def test_delete_documents(client: TestClient, user_headers, admin_headers) -> None:
    created = create(client, user_headers, files=[pdf_file("a.pdf"), pdf_file("b.pdf")]).json()
    tender_pk = created["id"]
    first, second = [d["id"] for d in created["documents"]]

    response = client.delete(f"{TENDERS_URL}/{tender_pk}/documents/{first}", headers=user_headers)
    assert response.status_code == 200
    assert response.json() == {"message": "Document deleted successfully"}

    last = client.delete(f"{TENDERS_URL}/{tender_pk}/documents/{second}", headers=admin_headers)
    assert last.status_code == 400
    assert last.json() == {"detail": "Cannot delete the last document. At least one document is required.", "message": "Cannot delete the last document. At least one document is required."}

    missing = client.delete(f"{TENDERS_URL}/{tender_pk}/documents/nope", headers=user_headers)
    assert missing.status_code == 404

    remaining = client.get(f"{TENDERS_URL}/{tender_pk}", headers=user_headers).json()["documents"]
    assert [d["originalName"] for d in remaining] == ["b.pdf"]


def test_oversized_upload_is_rejected_before_storage(client: TestClient, user_headers, store) -> None:
    response = create(client, user_headers, files=[pdf_file("big.pdf", b"x" * 5000)])

    assert response.status_code == 400
    assert response.json()["detail"] == "File too large: big.pdf exceeds 1024 bytes"
    assert store.store_calls == 0


def test_error_bodies_carry_message_for_the_web_client(client: TestClient, user_headers) -> None:
    unauthenticated = client.get(TENDERS_URL)
    missing = client.get(f"{TENDERS_URL}/does-not-exist", headers=user_headers)
    no_route = client.get("/api/v1/nothing-here", headers=user_headers)

    assert unauthenticated.json()["message"] == "Not authenticated"
    assert unauthenticated.headers["www-authenticate"] == "Bearer"
    assert missing.json()["message"] == "Tender not found"
    assert no_route.status_code == 404
    assert no_route.json()["message"] == no_route.json()["detail"]


def test_startup_puts_document_store_on_app_state(client: TestClient) -> None:
    from app.main import app
    from app.services.document_store import S3DocumentStore

    assert isinstance(app.state.document_store, S3DocumentStore)


def test_input_models_accept_camel_case_and_field_names() -> None:
    from app.schemas.tenders import TenderUpdate

    by_alias = TenderUpdate.model_validate({"tenderId": " T-9 ", "dueDate": "2025-05-01T00:00:00Z"})
    by_name = TenderUpdate(tender_id="T-9")

    assert by_alias.tender_id == "T-9" and by_name.tender_id == "T-9"
    assert str(by_alias.due_date) == "2025-05-01"
    assert by_alias.model_dump(by_alias=True, exclude_none=True) == {"tenderId": "T-9", "dueDate": by_alias.due_date}
