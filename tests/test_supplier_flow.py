from ddsportal.db.schema import LinkState


SUBMISSION = {
    "po_number": "PO1",
    "delivery_postcode": "1234",
    "reference_number": "REF1",
}


def _generate_link(admin_client, email="supplier@x.com"):
    response = admin_client.post("/api/admin/generate-link", json={
        "supplier_email": email,
        "valid_until": "2999-01-01T00:00:00",
    })
    assert response.status_code == 201
    return response.json()


def _login(client, outbox, supplier_link_id, email="supplier@x.com"):
    response = client.post("/api/supplier/verify-email", json={
        "email": email, "supplier_link_id": supplier_link_id
    })
    assert response.status_code == 200

    code = outbox.last("otp")["payload"]["code"]
    response = client.post("/api/supplier/validate-otp", json={
        "email": email, "otp": code, "supplier_link_id": supplier_link_id
    })
    assert response.status_code == 200
    return response.json()["token"]


def _auth(token):
    return {"Authorization": f"Bearer {token}"}


def test_otp_login_submit_and_list(admin_client, outbox):
    link = _generate_link(admin_client)
    token = _login(admin_client, outbox, link["supplier_link_id"])

    response = admin_client.post("/api/supplier/submit", json=SUBMISSION, headers=_auth(token))
    assert response.status_code == 201
    assert response.json()["message"] == "Reference submitted successfully"

    response = admin_client.get("/api/supplier/submissions", headers=_auth(token))
    assert response.status_code == 200
    rows = response.json()["submissions"]
    assert len(rows) == 1
    assert rows[0]["reference_number"] == "REF1"
    assert rows[0]["submitted_by_email"] == "supplier@x.com"


def test_verify_email_rejects_malformed_link(client):
    response = client.post("/api/supplier/verify-email", json={
        "email": "supplier@x.com", "supplier_link_id": "not-a-link"
    })
    assert response.status_code == 422


def test_verify_email_unknown_link(client):
    response = client.post("/api/supplier/verify-email", json={
        "email": "supplier@x.com", "supplier_link_id": "ZZZZ-ZZZZ"
    })
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_wrong_otp_is_generic_401(client, outbox, make_link):
    link, _ = make_link()
    client.post("/api/supplier/verify-email", json={
        "email": "supplier@x.com", "supplier_link_id": link.id
    })
    code = outbox.last("otp")["payload"]["code"]
    wrong = "%06d" % ((int(code) + 1) % 1000000)

    response = client.post("/api/supplier/validate-otp", json={
        "email": "supplier@x.com", "otp": wrong, "supplier_link_id": link.id
    })

    assert response.status_code == 401
    assert response.json() == {
        "error": {"code": "UNAUTHORIZED", "message": "Invalid or expired OTP"}
    }


def test_submissions_require_credential(client):
    response = client.get("/api/supplier/submissions")
    assert response.status_code == 401
    assert response.json()["error"]["message"] == "Access token required"


def test_submit_requires_po_or_delivery(client, make_link):
    link, _ = make_link()
    token = client.post("/api/supplier/test-login", json={"supplier_link_id": link.id}).json()["token"]

    response = client.post(
        "/api/supplier/submit",
        json={"delivery_postcode": "1234", "reference_number": "REF1"},
        headers=_auth(token)
    )
    assert response.status_code == 422


def test_activated_link_uses_bypass_credential(admin_client):
    link = _generate_link(admin_client)

    # Not yet activated
    response = admin_client.get(f"/api/supplier/links/{link['supplier_link_id']}/access")
    assert response.status_code == 404

    response = admin_client.post(f"/api/admin/links/{link['id']}/activate", json={"admin_notes": "trusted"})
    assert response.status_code == 200
    assert response.json()["link"]["state"] == LinkState.ACTIVE.value

    response = admin_client.get(f"/api/supplier/links/{link['supplier_link_id']}/access")
    assert response.status_code == 200
    bypass = response.json()["token"]

    response = admin_client.post("/api/supplier/submit", json=SUBMISSION, headers=_auth(bypass))
    assert response.status_code == 201

    rows = admin_client.get("/api/supplier/submissions", headers=_auth(bypass)).json()["submissions"]
    assert rows[0]["submitted_by_email"] is None


def test_freeze_revokes_supplier_access(admin_client, outbox):
    link = _generate_link(admin_client)
    token = _login(admin_client, outbox, link["supplier_link_id"])

    response = admin_client.delete(f"/api/admin/links/{link['id']}")
    assert response.status_code == 200
    assert response.json()["state"] == LinkState.FROZEN.value

    response = admin_client.get("/api/supplier/submissions", headers=_auth(token))
    assert response.status_code == 401


def test_bulk_submit_reports_each_row(client, make_link):
    link, _ = make_link()
    token = client.post("/api/supplier/test-login", json={"supplier_link_id": link.id}).json()["token"]

    rows = [dict(SUBMISSION, reference_number=f"REF{i}") for i in range(3)]
    response = client.post("/api/supplier/bulk-submit", json={"submissions": rows}, headers=_auth(token))

    assert response.status_code == 200
    body = response.json()
    assert body["summary"] == {"total": 3, "created": 3, "errors": 0}
    assert [r["status"] for r in body["results"]] == ["created"] * 3

    listing = client.get("/api/supplier/submissions", headers=_auth(token)).json()
    assert len(listing["submissions"]) == 3


def test_bulk_submit_limits(client, make_link):
    link, _ = make_link()
    token = client.post("/api/supplier/test-login", json={"supplier_link_id": link.id}).json()["token"]

    empty = client.post("/api/supplier/bulk-submit", json={"submissions": []}, headers=_auth(token))
    too_many = client.post(
        "/api/supplier/bulk-submit",
        json={"submissions": [SUBMISSION] * 101},
        headers=_auth(token)
    )

    assert empty.status_code == 422
    assert too_many.status_code == 422


def test_strict_limiter_caps_otp_requests(client, make_link):
    link, _ = make_link()
    payload = {"email": "supplier@x.com", "supplier_link_id": link.id}

    codes = [client.post("/api/supplier/verify-email", json=payload).status_code for _ in range(6)]

    assert codes[:5] == [200] * 5
    assert codes[5] == 429
    assert client.post("/api/supplier/verify-email", json=payload).json()["error"]["code"] == "RATE_LIMITED"


def test_strict_limiter_caps_direct_access_lookups(client):
    codes = {
        client.get("/api/supplier/links/AAAA-%04d/access" % i).status_code
        for i in range(6)
    }

    assert 404 in codes
    assert 429 in codes
    assert client.get("/api/supplier/links/AAAA-9999/access").status_code == 429
