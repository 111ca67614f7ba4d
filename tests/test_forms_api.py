import uuid
from decimal import Decimal

from conftest import application, auth_headers, lawn_payload, pesticide_payload, shrub_payload
from landscape_forms.models.form import Form
from landscape_forms.services import forms as forms_service


def create(client, user, form_type, payload):
    response = client.post(f"/api/forms/{form_type}", json=payload, headers=auth_headers(user))
    assert response.status_code == 201, response.text
    return response.json()["id"]


def list_names(response):
    return [form["first_name"] for form in response.json()["forms"]]


def test_create_and_read_shrub_form(client, alice, make_chemical):
    chemical = make_chemical("Merit", category="shrub")
    form_id = create(client, alice, "shrub", shrub_payload(
        [application(chemical.id, "2024-05-02T07:30:00", amount_applied="1.75", location_code="3C")],
        first_name="Ruth", num_shrubs=21,
    ))

    response = client.get(f"/api/forms/{form_id}", headers=auth_headers(alice))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == form_id
    assert body["form_type"] == "shrub"
    assert body["first_name"] == "Ruth"
    assert body["created_by"] == str(alice.id)
    assert body["num_shrubs"] == 21
    assert body["lawn_area_sq_ft"] is None
    assert body["first_app_date"].startswith("2024-05-02T07:30:00")
    assert len(body["applications"]) == 1
    assert Decimal(str(body["applications"][0]["amount_applied"])) == Decimal("1.75")
    assert body["applications"][0]["location_code"] == "3C"


def test_typed_read(client, alice):
    form_id = create(client, alice, "lawn", lawn_payload(lawn_area_sq_ft=900))

    response = client.get(f"/api/forms/lawn/{form_id}", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["lawn_area_sq_ft"] == 900
    assert response.json()["fert_only"] is True

    assert client.get(f"/api/forms/shrub/{form_id}", headers=auth_headers(alice)).status_code == 404
    assert client.get(f"/api/forms/tree/{form_id}", headers=auth_headers(alice)).status_code == 400


def test_other_users_forms_are_not_found(client, alice, bob):
    form_id = create(client, alice, "pesticide", pesticide_payload())
    headers = auth_headers(bob)

    read = client.get(f"/api/forms/{form_id}", headers=headers)
    typed = client.get(f"/api/forms/pesticide/{form_id}", headers=headers)
    update = client.put(f"/api/forms/pesticide/{form_id}", json=pesticide_payload(), headers=headers)
    delete = client.delete(f"/api/forms/{form_id}", headers=headers)

    for response in (read, typed, update, delete):
        assert response.status_code == 404
        assert response.json() == {"error": "Not Found", "message": "Form not found"}

    missing = client.get(f"/api/forms/{uuid.uuid4()}", headers=headers)
    assert missing.json() == read.json()


def test_update_form(client, alice, make_chemical):
    chemical = make_chemical("Merit", category="shrub")
    form_id = create(client, alice, "shrub", shrub_payload([application(chemical.id)]))

    response = client.put(
        f"/api/forms/shrub/{form_id}",
        json=shrub_payload([], town="Hackensack", num_shrubs=2),
        headers=auth_headers(alice),
    )

    assert response.status_code == 200
    assert response.json()["town"] == "Hackensack"
    assert response.json()["num_shrubs"] == 2
    assert response.json()["applications"] == []
    assert response.json()["first_app_date"] is None


def test_update_with_wrong_type_is_not_found(client, alice):
    form_id = create(client, alice, "shrub", shrub_payload())

    response = client.put(f"/api/forms/lawn/{form_id}", json=lawn_payload(), headers=auth_headers(alice))

    assert response.status_code == 404


def test_delete_form(client, alice):
    form_id = create(client, alice, "shrub", shrub_payload())

    response = client.delete(f"/api/forms/{form_id}", headers=auth_headers(alice))

    assert response.status_code == 204
    assert client.get(f"/api/forms/{form_id}", headers=auth_headers(alice)).status_code == 404


def test_invalid_bodies_are_bad_requests(client, alice):
    headers = auth_headers(alice)

    bad_zip = client.post("/api/forms/shrub", json=shrub_payload(zip_code="7666"), headers=headers)
    assert bad_zip.status_code == 400
    assert bad_zip.json()["error"] == "Bad Request"
    assert "zip_code" in bad_zip.json()["message"]

    payload = lawn_payload()
    del payload["lawn_area_sq_ft"]
    assert client.post("/api/forms/lawn", json=payload, headers=headers).status_code == 400

    malformed = client.post(
        "/api/forms/pesticide",
        content="{not json",
        headers={**headers, "Content-Type": "application/json"},
    )
    assert malformed.status_code == 400

    assert client.get("/api/forms/not-a-uuid", headers=headers).status_code == 400


def test_unknown_chemical_is_bad_request(client, alice):
    response = client.post("/api/forms/shrub", json=shrub_payload([application(4242)]), headers=auth_headers(alice))

    assert response.status_code == 400
    assert "4242" in response.json()["message"]


def test_list_only_returns_own_forms(client, alice, bob):
    create(client, alice, "shrub", shrub_payload(first_name="Mine"))
    create(client, bob, "shrub", shrub_payload(first_name="Theirs"))

    response = client.get("/api/forms", headers=auth_headers(alice))

    assert response.status_code == 200
    assert list_names(response) == ["Mine"]
    assert response.json()["count"] == 1
    assert response.json()["total"] == 1


def test_list_sorting_and_fallback(client, alice):
    for first_name in ("Zoe", "Alice", "Michael"):
        create(client, alice, "shrub", shrub_payload(first_name=first_name))
    headers = auth_headers(alice)

    ascending = client.get("/api/forms", params={"sort_by": "first_name", "order": "ASC"}, headers=headers)
    descending = client.get("/api/forms", params={"sort_by": "first_name", "order": "DESC"}, headers=headers)
    injected = client.get("/api/forms", params={"sort_by": "1; DROP TABLE forms", "order": "x"}, headers=headers)
    default = client.get("/api/forms", headers=headers)

    assert list_names(ascending) == ["Alice", "Michael", "Zoe"]
    assert list_names(descending) == ["Zoe", "Michael", "Alice"]
    assert injected.status_code == 200
    assert list_names(injected) == list_names(default)


def test_list_chemical_filter_accepts_both_formats(client, alice, make_chemical):
    chem_a = make_chemical("Glyphosate")
    chem_b = make_chemical("Bifenthrin")
    create(client, alice, "lawn", lawn_payload([application(chem_a.id)], first_name="A"))
    create(client, alice, "lawn", lawn_payload([application(chem_b.id)], first_name="B"))
    create(client, alice, "lawn", lawn_payload(first_name="None"))
    headers = auth_headers(alice)
    params = {"sort_by": "first_name", "order": "ASC"}

    single = client.get("/api/forms", params={**params, "chemical_ids": chem_a.id}, headers=headers)
    repeated = client.get("/api/forms", params={**params, "chemical_ids": [chem_a.id, chem_b.id]}, headers=headers)
    comma = client.get("/api/forms", params={**params, "chemical_ids": f"{chem_a.id},{chem_b.id}"}, headers=headers)
    bad = client.get("/api/forms", params={"chemical_ids": "1,abc"}, headers=headers)

    assert list_names(single) == ["A"]
    assert list_names(repeated) == ["A", "B"]
    assert list_names(comma) == ["A", "B"]
    assert bad.status_code == 400


def test_list_filters_and_aliases(client, alice, make_chemical):
    chemical = make_chemical("Glyphosate")
    create(client, alice, "shrub", shrub_payload(
        [application(chemical.id, "2024-04-10T09:00:00")], first_name="Hanna", is_holiday=True,
    ))
    create(client, alice, "lawn", lawn_payload(first_name="Lars", zip_code="07601"))
    headers = auth_headers(alice)

    assert list_names(client.get("/api/forms", params={"type": "lawn"}, headers=headers)) == ["Lars"]
    assert list_names(client.get("/api/forms", params={"form_type": "shrub"}, headers=headers)) == ["Hanna"]
    assert list_names(client.get("/api/forms", params={"search": "HAN"}, headers=headers)) == ["Hanna"]
    assert list_names(client.get("/api/forms", params={"search_name": "lar"}, headers=headers)) == ["Lars"]
    assert list_names(client.get("/api/forms", params={"jewish_holiday": "yes"}, headers=headers)) == ["Hanna"]
    assert list_names(client.get("/api/forms", params={"zip_code": "07601"}, headers=headers)) == ["Lars"]

    dated = client.get(
        "/api/forms",
        params={"date_low": "2024-04-01T00:00:00", "date_high": "2024-04-30T23:59:59"},
        headers=headers,
    )
    assert list_names(dated) == ["Hanna"]


def test_list_pagination(client, alice):
    for first_name in ("A", "B", "C", "D", "E"):
        create(client, alice, "shrub", shrub_payload(first_name=first_name))
    headers = auth_headers(alice)
    params = {"sort_by": "first_name", "order": "ASC", "limit": 2}

    first_page = client.get("/api/forms", params={**params, "page": 1}, headers=headers)
    third_page = client.get("/api/forms", params={**params, "page": 3}, headers=headers)
    by_offset = client.get("/api/forms", params={**params, "offset": 1}, headers=headers)

    assert list_names(first_page) == ["A", "B"]
    assert first_page.json()["count"] == 2
    assert first_page.json()["total"] == 5
    assert list_names(third_page) == ["E"]
    assert list_names(by_offset) == ["B", "C"]


def test_admin_sees_every_form(client, alice, bob, admin):
    alice_form = create(client, alice, "shrub", shrub_payload(first_name="FromAlice"))
    create(client, bob, "lawn", lawn_payload(first_name="FromBob"))

    response = client.get(
        "/api/admin/forms", params={"sort_by": "first_name", "order": "ASC"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert list_names(response) == ["FromAlice", "FromBob"]
    assert response.json()["total"] == 2

    detail = client.get(f"/api/forms/{alice_form}", headers=auth_headers(admin))
    assert detail.status_code == 200
    assert detail.json()["first_name"] == "FromAlice"

    # Writes stay with the owner
    assert client.delete(f"/api/forms/{alice_form}", headers=auth_headers(admin)).status_code == 404


def test_admin_list_requires_admin(client, alice):
    response = client.get("/api/admin/forms", headers=auth_headers(alice))

    assert response.status_code == 403
    assert response.json() == {"error": "Forbidden", "message": "Admin access required"}


def test_inconsistent_stored_form_is_server_error(client, session, alice):
    form = Form(
        created_by=alice.id,
        form_type="hedge",
        first_name="Broken",
        last_name="Row",
        street_number="1",
        street_name="Main St",
        town="Teaneck",
        zip_code="07666",
        home_phone="201-555-0100",
    )
    session.add(form)
    session.commit()
    session.refresh(form)

    response = client.get(f"/api/forms/{form.id}", headers=auth_headers(alice))

    assert response.status_code == 500
    assert response.json()["error"] == "Internal Server Error"


def test_non_positive_paging_values_are_ignored(client, alice):
    create(client, alice, "lawn", lawn_payload(first_name="One"))
    create(client, alice, "lawn", lawn_payload(first_name="Two"))
    headers = auth_headers(alice)

    response = client.get("/api/forms", params={"limit": -1, "offset": -5, "page": -2}, headers=headers)

    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert response.json()["total"] == 2


def test_collection_paths_answer_without_redirect(client, alice, admin):
    create(client, alice, "shrub", shrub_payload())

    forms = client.get("/api/forms", headers=auth_headers(alice), follow_redirects=False)
    chemicals = client.get("/api/chemicals", headers=auth_headers(alice), follow_redirects=False)
    users = client.get("/api/users", headers=auth_headers(admin), follow_redirects=False)
    admin_forms = client.get("/api/admin/forms", headers=auth_headers(admin), follow_redirects=False)
    created = client.post(
        "/api/admin/chemicals",
        json={"category": "lawn", "brand_name": "Roundup", "chemical_name": "Glyphosate"},
        headers=auth_headers(admin),
        follow_redirects=False,
    )

    assert forms.status_code == 200
    assert forms.json()["total"] == 1
    assert chemicals.status_code == 200
    assert users.status_code == 200
    assert admin_forms.status_code == 200
    assert created.status_code == 201


def test_unexpected_error_is_logged_and_answered(client, alice, monkeypatch):
    def broken_list(session, owner_id, opts):
        raise RuntimeError("connection dropped")

    monkeypatch.setattr(forms_service, "list_forms", broken_list)

    response = client.get("/api/forms", headers={**auth_headers(alice), "X-Request-ID": "req-42"})

    assert response.status_code == 500
    assert response.json() == {"error": "Internal Server Error", "message": "Internal server error"}
    assert response.headers["X-Request-ID"] == "req-42"
