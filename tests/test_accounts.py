"""Tests for accounts: signup, profiles, follows, organizer admin and password resets."""
from felicity.models.account import Account, Organizer, Participant
from felicity.models.event import Event
from felicity.models.password_reset import PasswordResetRequest
from felicity.services import account_service
from tests.conftest import create_event, create_organizer, create_participant, register


class TestSignup:
    """Self-service signup creates participants only."""

    def test_signup_creates_participant(self, client):
        data = create_participant(client, email="Asha@Students.IIIT.ac.in")
        assert data["role"] == "participant"
        assert data["email"] == "asha@students.iiit.ac.in"
        assert data["display_name"] == "Asha Rao"
        assert data["participant_type"] == "iiit"
        assert data["onboarding_completed"] is False
        assert "password_hash" not in data

    def test_password_is_stored_hashed(self, client, db):
        data = create_participant(client)
        account = db.query(Account).filter(Account.account_id == data["account_id"]).one()
        assert account.password_hash != "secret123"
        assert account_service.verify_password("secret123", account.password_hash)

    def test_duplicate_email_rejected(self, client):
        create_participant(client, email="dup@students.iiit.ac.in")
        resp = client.post("/api/users/", json={
            "email": "DUP@students.iiit.ac.in",
            "password": "secret123",
            "first_name": "B",
            "last_name": "C",
        })
        assert resp.status_code == 409
        assert resp.json()["detail"]["error"] == "EmailTaken"

    def test_short_password_rejected(self, client):
        resp = client.post("/api/users/", json={
            "email": "x@students.iiit.ac.in", "password": "123", "first_name": "X", "last_name": "Y",
        })
        assert resp.status_code == 422

    def test_multibyte_password_within_72_bytes(self, client, db):
        password = "é" * 36
        resp = client.post("/api/users/", json={
            "email": "accent@students.iiit.ac.in", "password": password, "first_name": "R", "last_name": "E",
        })
        assert resp.status_code == 201
        account = db.query(Account).filter(Account.account_id == resp.json()["account_id"]).one()
        assert account_service.verify_password(password, account.password_hash)

    def test_multibyte_password_over_72_bytes_rejected(self, client):
        # 40 characters but 80 bytes in UTF-8
        resp = client.post("/api/users/", json={
            "email": "accent@students.iiit.ac.in", "password": "é" * 40, "first_name": "R", "last_name": "E",
        })
        assert resp.status_code == 422

    def test_unknown_actor_is_unauthorized(self, client):
        resp = client.get("/api/users/me?actor_id=nobody")
        assert resp.status_code == 401


class TestProfile:
    """Profile edits are restricted to the caller's role."""

    def test_participant_updates_own_fields(self, client):
        p = create_participant(client)
        resp = client.patch(f"/api/users/me?actor_id={p['account_id']}", json={
            "college": "IIIT Delhi", "interests": ["music"],
        })
        assert resp.status_code == 200
        assert resp.json()["college"] == "IIIT Delhi"
        assert resp.json()["interests"] == ["music"]

    def test_participant_cannot_set_organizer_fields(self, client):
        p = create_participant(client)
        resp = client.patch(f"/api/users/me?actor_id={p['account_id']}", json={"organizer_name": "Fake Club"})
        assert resp.status_code == 400

    def test_organizer_sets_webhook(self, client, admin_id):
        org = create_organizer(client, admin_id)
        resp = client.patch(f"/api/users/me?actor_id={org['account_id']}", json={
            "webhook_url": "https://discord.example/webhook",
        })
        assert resp.status_code == 200
        assert resp.json()["webhook_url"] == "https://discord.example/webhook"

    def test_onboarding_sets_interests_and_follows(self, client, admin_id):
        org = create_organizer(client, admin_id)
        p = create_participant(client)
        resp = client.post(f"/api/users/me/onboarding?actor_id={p['account_id']}", json={
            "interests": ["robotics", "music"],
            "followed_organizer_ids": [org["account_id"]],
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["onboarding_completed"] is True
        assert body["interests"] == ["robotics", "music"]
        assert body["followed_organizer_ids"] == [org["account_id"]]

    def test_follow_and_unfollow(self, client, admin_id):
        org = create_organizer(client, admin_id)
        p = create_participant(client)
        resp = client.post(f"/api/users/me/following/{org['account_id']}?actor_id={p['account_id']}")
        assert resp.json()["followed_organizer_ids"] == [org["account_id"]]
        # Following twice is a no-op
        resp = client.post(f"/api/users/me/following/{org['account_id']}?actor_id={p['account_id']}")
        assert resp.json()["followed_organizer_ids"] == [org["account_id"]]

        following = client.get(f"/api/users/me/following?actor_id={p['account_id']}").json()
        assert [o["organizer_name"] for o in following] == ["Robotics Club"]

        resp = client.delete(f"/api/users/me/following/{org['account_id']}?actor_id={p['account_id']}")
        assert resp.json()["followed_organizer_ids"] == []

    def test_organizer_cannot_follow(self, client, admin_id):
        org = create_organizer(client, admin_id)
        other = create_organizer(client, admin_id, name="Music Club")
        resp = client.post(f"/api/users/me/following/{other['account_id']}?actor_id={org['account_id']}")
        assert resp.status_code == 403


class TestChangePassword:
    def test_new_password_over_72_bytes_rejected(self, client):
        p = create_participant(client)
        resp = client.post(f"/api/users/me/password?actor_id={p['account_id']}", json={
            "current_password": "secret123", "new_password": "é" * 40,
        })
        assert resp.status_code == 422

    def test_overlong_current_password_is_wrong_not_an_error(self, client):
        p = create_participant(client)
        resp = client.post(f"/api/users/me/password?actor_id={p['account_id']}", json={
            "current_password": "é" * 40, "new_password": "newsecret",
        })
        assert resp.status_code == 401

    def test_verify_refuses_input_over_72_bytes(self):
        stored = account_service.hash_password("é" * 36, rounds=4)
        assert account_service.verify_password("é" * 36, stored)
        # Shares the stored 72-byte prefix but must not match
        assert not account_service.verify_password("é" * 40, stored)

    def test_wrong_current_password(self, client):
        p = create_participant(client)
        resp = client.post(f"/api/users/me/password?actor_id={p['account_id']}", json={
            "current_password": "wrong-one", "new_password": "newsecret",
        })
        assert resp.status_code == 401

    def test_change_password(self, client, db):
        p = create_participant(client)
        resp = client.post(f"/api/users/me/password?actor_id={p['account_id']}", json={
            "current_password": "secret123", "new_password": "newsecret",
        })
        assert resp.status_code == 204
        account = db.query(Account).filter(Account.account_id == p["account_id"]).one()
        assert account_service.verify_password("newsecret", account.password_hash)


class TestOrganizerAdmin:
    """Admins create, edit and remove organizer accounts."""

    def test_admin_bootstrapped_once(self, client, database, settings):
        with database.session() as session:
            assert account_service.ensure_admin(session, settings.ADMIN_EMAIL, "other", 4) is None

    def test_create_organizer_returns_credentials_once(self, client, admin_id, db):
        resp = client.post(f"/api/admin/organizers?actor_id={admin_id}", json={
            "organizer_name": "Music Club", "category": "club",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["credentials"]["email"] == "musicclub@felicity.com"
        assert len(body["credentials"]["password"]) == 12
        assert body["organizer"]["role"] == "organizer"

        organizer = db.query(Organizer).filter(Organizer.account_id == body["organizer"]["account_id"]).one()
        assert account_service.verify_password(body["credentials"]["password"], organizer.password_hash)

    def test_duplicate_organizer_name(self, client, admin_id):
        create_organizer(client, admin_id, name="Music Club")
        resp = client.post(f"/api/admin/organizers?actor_id={admin_id}", json={
            "organizer_name": "music club", "category": "club",
        })
        assert resp.status_code == 409

    def test_non_admin_forbidden(self, client):
        p = create_participant(client)
        resp = client.post(f"/api/admin/organizers?actor_id={p['account_id']}", json={
            "organizer_name": "Sneaky", "category": "club",
        })
        assert resp.status_code == 403

    def test_update_organizer(self, client, admin_id):
        org = create_organizer(client, admin_id)
        resp = client.patch(f"/api/admin/organizers/{org['account_id']}?actor_id={admin_id}", json={
            "category": "council",
        })
        assert resp.status_code == 200
        assert resp.json()["category"] == "council"

    def test_public_directory(self, client, admin_id):
        create_organizer(client, admin_id, name="Music Club")
        create_organizer(client, admin_id, name="Quiz Club")
        names = {o["organizer_name"] for o in client.get("/api/organizers/").json()}
        assert names == {"Music Club", "Quiz Club"}

    def test_delete_organizer_cascades(self, client, admin_id, db):
        org = create_organizer(client, admin_id)
        event = create_event(client, org["account_id"])
        p = create_participant(client)
        assert register(client, p["account_id"], event["event_id"]).status_code == 201

        resp = client.delete(f"/api/admin/organizers/{org['account_id']}?actor_id={admin_id}")
        assert resp.status_code == 200
        assert resp.json()["deleted_events"] == 1

        assert db.query(Event).filter(Event.event_id == event["event_id"]).first() is None
        mine = client.get(f"/api/registrations/mine?actor_id={p['account_id']}").json()
        assert mine == []
        assert db.query(Participant).filter(Participant.account_id == p["account_id"]).one()

    def test_list_accounts_by_role(self, client, admin_id):
        create_participant(client)
        create_organizer(client, admin_id)
        resp = client.get(f"/api/admin/accounts?role=participant&actor_id={admin_id}")
        assert [a["role"] for a in resp.json()] == ["participant"]
        assert client.get(f"/api/admin/accounts?role=wizard&actor_id={admin_id}").status_code == 400

    def test_stats(self, client, admin_id):
        org = create_organizer(client, admin_id)
        event = create_event(client, org["account_id"])
        p = create_participant(client)
        register(client, p["account_id"], event["event_id"])
        stats = client.get(f"/api/admin/stats?actor_id={admin_id}").json()
        assert stats["total_participants"] == 1
        assert stats["total_organizers"] == 1
        assert stats["total_events"] == 1
        assert stats["total_registrations"] == 1
        assert stats["recent_events"][0]["name"] == "Robo Wars"


class TestPasswordReset:
    """Organizer requests a reset, an admin approves or rejects it."""

    def test_request_and_approve(self, client, admin_id, db):
        org = create_organizer(client, admin_id)
        resp = client.post(f"/api/password-resets/?actor_id={org['account_id']}", json={"reason": "forgot it"})
        assert resp.status_code == 201
        request_id = resp.json()["request_id"]

        mine = client.get(f"/api/password-resets/mine?actor_id={org['account_id']}").json()
        assert mine["request_id"] == request_id

        pending = client.get(f"/api/password-resets/?actor_id={admin_id}").json()
        assert [r["request_id"] for r in pending] == [request_id]

        resp = client.post(f"/api/password-resets/{request_id}/approve?actor_id={admin_id}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["request"]["status"] == "approved"
        assert body["request"]["resolved_by"] == admin_id
        assert body["organizer_name"] == "Robotics Club"
        new_password = body["credentials"]["password"]

        organizer = db.query(Organizer).filter(Organizer.account_id == org["account_id"]).one()
        assert account_service.verify_password(new_password, organizer.password_hash)
        assert client.get(f"/api/password-resets/?actor_id={admin_id}").json() == []

    def test_only_one_pending_request(self, client, admin_id):
        org = create_organizer(client, admin_id)
        client.post(f"/api/password-resets/?actor_id={org['account_id']}", json={"reason": "a"})
        resp = client.post(f"/api/password-resets/?actor_id={org['account_id']}", json={"reason": "b"})
        assert resp.status_code == 400

    def test_reject_then_cannot_approve(self, client, admin_id, db):
        org = create_organizer(client, admin_id)
        request_id = client.post(
            f"/api/password-resets/?actor_id={org['account_id']}", json={"reason": "x"}
        ).json()["request_id"]
        resp = client.post(f"/api/password-resets/{request_id}/reject?actor_id={admin_id}")
        assert resp.json()["status"] == "rejected"
        resp = client.post(f"/api/password-resets/{request_id}/approve?actor_id={admin_id}")
        assert resp.status_code == 400
        assert db.query(PasswordResetRequest).count() == 1

    def test_participants_cannot_request(self, client):
        p = create_participant(client)
        resp = client.post(f"/api/password-resets/?actor_id={p['account_id']}", json={"reason": "x"})
        assert resp.status_code == 403
