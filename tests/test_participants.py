"""
Tests for participant enrollment, removal, export and the /users endpoints.
"""

from io import BytesIO

from openpyxl import load_workbook

from app.models.participation import Participation


def _count(db, **filters) -> int:
    db.expire_all()
    return db.query(Participation).filter_by(**filters).count()


class TestRegisterParticipant:
    def test_register_when_open(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop(isRegOpen=True)
        user = make_user()

        response = client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["participantsCount"] == 1

        detail = client.get(f"/workshops/manage/{workshop['id']}", headers=admin_headers).json()
        assert [p["id"] for p in detail["participants"]] == [user.id]
        assert detail["participants"][0]["workshops"] == [{"workshop": workshop["id"]}]

    def test_register_when_closed_adds_nothing(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop(isRegOpen=False)
        user = make_user()

        response = client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Registration is closed"
        assert _count(db, workshop_id=workshop["id"]) == 0

        profile = client.get(f"/users/manage/{user.id}", headers=admin_headers).json()
        assert profile["workshops"] == []

    def test_register_twice_is_idempotent(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user()
        url = f"/workshops/manage/{workshop['id']}/user/{user.id}"

        assert client.put(url, headers=admin_headers).status_code == 200
        second = client.put(url, headers=admin_headers)
        assert second.status_code == 200
        assert second.json()["participantsCount"] == 1
        assert _count(db, workshop_id=workshop["id"]) == 1

    def test_register_when_full(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop(capacity=1)
        first, second = make_user("Sara Ahmadi"), make_user("Reza Karimi")

        assert client.put(f"/workshops/manage/{workshop['id']}/user/{first.id}", headers=admin_headers).status_code == 200
        response = client.put(f"/workshops/manage/{workshop['id']}/user/{second.id}", headers=admin_headers)
        assert response.status_code == 409
        assert _count(db, workshop_id=workshop["id"]) == 1

    def test_register_unknown_user_or_workshop(self, client, admin_headers, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user()
        assert client.put(f"/workshops/manage/{workshop['id']}/user/999", headers=admin_headers).status_code == 404
        assert client.put(f"/workshops/manage/999/user/{user.id}", headers=admin_headers).status_code == 404

    def test_viewer_cannot_register(self, client, viewer_headers, db, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user()
        response = client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=viewer_headers)
        assert response.status_code == 403
        assert _count(db) == 0


class TestUnregisterParticipant:
    def test_unregister_removes_exactly_one(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop()
        other = make_workshop(title="Other")
        keep, leave = make_user("Sara Ahmadi"), make_user("Reza Karimi")

        for u in (keep, leave):
            client.put(f"/workshops/manage/{workshop['id']}/user/{u.id}", headers=admin_headers)
        client.put(f"/workshops/manage/{other['id']}/user/{leave.id}", headers=admin_headers)

        response = client.delete(f"/workshops/manage/{workshop['id']}/user/{leave.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["participantsCount"] == 1

        detail = client.get(f"/workshops/manage/{workshop['id']}", headers=admin_headers).json()
        assert [p["id"] for p in detail["participants"]] == [keep.id]

        # the enrollment in the other workshop is untouched
        profile = client.get(f"/users/manage/{leave.id}", headers=admin_headers).json()
        assert profile["workshops"] == [{"workshop": other["id"]}]

    def test_unregister_not_enrolled_returns_404(self, client, admin_headers, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user()
        response = client.delete(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)
        assert response.status_code == 404


class TestDeleteWorkshopWithParticipants:
    def test_no_user_references_deleted_workshop(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop()
        other = make_workshop(title="Other")
        users = [make_user(f"User {name}") for name in ("One", "Two", "Three")]
        for u in users:
            client.put(f"/workshops/manage/{workshop['id']}/user/{u.id}", headers=admin_headers)
        client.put(f"/workshops/manage/{other['id']}/user/{users[0].id}", headers=admin_headers)

        response = client.delete(f"/workshops/manage/{workshop['id']}", headers=admin_headers)
        assert response.status_code == 204

        assert _count(db, workshop_id=workshop["id"]) == 0
        assert _count(db, workshop_id=other["id"]) == 1
        for u in users:
            profile = client.get(f"/users/manage/{u.id}", headers=admin_headers).json()
            assert {"workshop": workshop["id"]} not in profile["workshops"]


class TestParticipantExport:
    def test_export_xlsx(self, client, admin_headers, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user("Sara Ahmadi")
        client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)

        response = client.get(f"/workshops/manage/{workshop['id']}/participants/export", headers=admin_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert "attachment" in response.headers["content-disposition"]

        ws = load_workbook(BytesIO(response.content)).active
        rows = list(ws.iter_rows(values_only=True))
        assert rows[0] == ("id", "fullName", "email", "phoneNumber", "registeredAt")
        assert rows[1][:3] == (user.id, "Sara Ahmadi", user.email)

    def test_export_empty_workshop(self, client, admin_headers, make_workshop):
        workshop = make_workshop()
        response = client.get(f"/workshops/manage/{workshop['id']}/participants/export", headers=admin_headers)
        assert response.status_code == 200

        ws = load_workbook(BytesIO(response.content)).active
        assert ws.max_row == 1


class TestUsers:
    def test_user_crud(self, client, admin_headers):
        created = client.post(
            "/users",
            json={"fullName": "Sara Ahmadi", "email": "sara@example.com", "phoneNumber": "09120000000"},
            headers=admin_headers,
        )
        assert created.status_code == 201
        user_id = created.json()["id"]

        updated = client.patch(f"/users/manage/{user_id}", json={"fullName": "Sara A."}, headers=admin_headers)
        assert updated.status_code == 200
        assert updated.json()["fullName"] == "Sara A."

        listing = client.get("/users", headers=admin_headers)
        assert [u["id"] for u in listing.json()] == [user_id]

        assert client.delete(f"/users/manage/{user_id}", headers=admin_headers).status_code == 204
        assert client.get(f"/users/manage/{user_id}", headers=admin_headers).status_code == 404

    def test_duplicate_email_rejected(self, client, admin_headers, make_user):
        existing = make_user()
        response = client.post(
            "/users", json={"fullName": "Someone", "email": existing.email}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_update_outside_whitelist_rejected(self, client, admin_headers, make_user):
        user = make_user()
        response = client.patch(f"/users/manage/{user.id}", json={"tokens": []}, headers=admin_headers)
        assert response.status_code == 400

    def test_delete_user_removes_enrollments(self, client, admin_headers, db, make_workshop, make_user):
        workshop = make_workshop()
        user = make_user()
        client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)

        assert client.delete(f"/users/manage/{user.id}", headers=admin_headers).status_code == 204
        assert _count(db, workshop_id=workshop["id"]) == 0

    def test_me_lists_own_workshops(self, client, admin_headers, user_headers, make_workshop):
        user, headers = user_headers
        workshop = make_workshop(title="Git")
        make_workshop(title="Not mine")
        client.put(f"/workshops/manage/{workshop['id']}/user/{user.id}", headers=admin_headers)

        response = client.get("/users/me", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["user"]["id"] == user.id
        assert [w["title"] for w in data["workshops"]] == ["Git"]
