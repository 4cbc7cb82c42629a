"""
HTTP-level tests of the membership service.
"""

import asyncio
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from conftest import SILVER_FIELDS, auth_header, make_token, seed_institution, seed_profile
from membership.main import create_app
from membership.models.enums import AccountStatus, Role
from membership.services import pending_submissions


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def client():
    with TestClient(create_app()) as test_client:
        yield test_client


@pytest.fixture
def member():
    return run(seed_profile(role=Role.MEMBER))


@pytest.fixture
def institution(member):
    return run(seed_institution(member.identity_id, payment_status="paid", nip="3507001", nip_active=True))


class TestHealth:
    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["name"] == "Membership Access Service"

    def test_health(self, client):
        response = client.get("/api/v1/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage_backend"] == "memory"


class TestAccessDecision:
    def test_anonymous_goes_to_login(self, client):
        response = client.get("/api/v1/access/decision", params={"path": "/dashboard"})
        assert response.status_code == 200
        assert response.json() == {"kind": "redirect", "location": "/login"}

    def test_invalid_token_is_anonymous(self, client):
        headers = {"Authorization": f"Bearer {make_token(uuid4(), secret='other-secret')}"}
        response = client.get("/api/v1/access/decision", params={"path": "/"}, headers=headers)
        assert response.json()["location"] == "/login"

    def test_pending_account_on_dashboard(self, client):
        profile = run(seed_profile(role=Role.MEMBER, status=AccountStatus.PENDING))
        response = client.get(
            "/api/v1/access/decision", params={"path": "/dashboard"}, headers=auth_header(profile.identity_id),
        )
        assert response.json() == {"kind": "redirect", "location": "/pending"}

    def test_member_on_central_dashboard(self, client, member):
        response = client.get(
            "/api/v1/access/decision", params={"path": "/dashboard"}, headers=auth_header(member.identity_id),
        )
        assert response.json() == {"kind": "redirect", "location": "/403"}

    def test_member_on_media_dashboard(self, client, member):
        response = client.get(
            "/api/v1/access/decision", params={"path": "/media-dashboard"}, headers=auth_header(member.identity_id),
        )
        assert response.json() == {"kind": "allow", "location": None}

    def test_token_without_profile_goes_to_login(self, client):
        response = client.get(
            "/api/v1/access/decision", params={"path": "/media-dashboard"}, headers=auth_header(uuid4()),
        )
        assert response.json()["location"] == "/login"


class TestAccessProfile:
    def test_requires_session(self, client):
        response = client.get("/api/v1/access/profile")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "MEMBERSHIP_AUTH_ERROR"

    def test_returns_security_fields_only(self, client, member):
        response = client.get("/api/v1/access/profile", headers=auth_header(member.identity_id))
        assert response.status_code == 200
        assert set(response.json()) == {"identity_id", "role", "account_status", "region_ref"}

    def test_internal_profile_fetch(self, client, member):
        assert client.get(f"/api/v1/internal/profiles/{member.identity_id}").status_code == 200
        assert client.get(f"/api/v1/internal/profiles/{uuid4()}").status_code == 404


class TestInstitutionEndpoints:
    def test_entitlements(self, client, member, institution):
        response = client.get(
            f"/api/v1/institutions/{institution}/entitlements", headers=auth_header(member.identity_id),
        )
        assert response.status_code == 200
        features = {f["feature"]: f for f in response.json()["features"]}
        assert features["digital_id_card"]["reason"] == "level_too_low"
        assert features["crew_add"]["locked"] is False

    def test_other_member_is_forbidden(self, client, institution):
        stranger = run(seed_profile(role=Role.MEMBER))
        response = client.get(
            f"/api/v1/institutions/{institution}/entitlements", headers=auth_header(stranger.identity_id),
        )
        assert response.status_code == 403

    def test_pending_account_cannot_use_api(self, client):
        pending = run(seed_profile(role=Role.MEMBER, status=AccountStatus.PENDING))
        iid = run(seed_institution(pending.identity_id))
        response = client.get(f"/api/v1/institutions/{iid}", headers=auth_header(pending.identity_id))
        assert response.status_code == 403
        assert response.json()["error"]["details"] == {"account_status": "pending"}

    def test_promotion_missing_fields(self, client, member, institution):
        response = client.post(
            f"/api/v1/institutions/{institution}/promotion",
            json={"target_level": "silver", "fields": {"institution_name": "Al-Hikmah"}},
            headers=auth_header(member.identity_id),
        )
        assert response.status_code == 422
        assert response.json()["error"]["details"]["missing"] == ["supervisor_name", "short_address"]

    def test_promotion_then_repeat(self, client, member, institution):
        body = {"target_level": "silver", "fields": SILVER_FIELDS}
        headers = auth_header(member.identity_id)
        first = client.post(f"/api/v1/institutions/{institution}/promotion", json=body, headers=headers)
        assert first.status_code == 200
        assert first.json()["profile_level"] == "silver"

        again = client.post(f"/api/v1/institutions/{institution}/promotion", json=body, headers=headers)
        assert again.status_code == 409
        assert again.json()["error"]["code"] == "MEMBERSHIP_ALREADY_AT_LEVEL"

    def test_skipping_a_tier(self, client, member, institution):
        response = client.post(
            f"/api/v1/institutions/{institution}/promotion",
            json={"target_level": "gold", "fields": {}},
            headers=auth_header(member.identity_id),
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "MEMBERSHIP_INVALID_TRANSITION"


class TestCrewEndpoints:
    def _add(self, client, member, institution, name="Ahmad Fauzi"):
        return client.post(
            f"/api/v1/institutions/{institution}/crew",
            json={"name": name, "whatsapp": "081234567890", "skill": "Desain"},
            headers=auth_header(member.identity_id),
        )

    def test_add_with_number(self, client, member, institution):
        response = self._add(client, member, institution)
        assert response.status_code == 201
        data = response.json()
        assert data["issuance"]["issued"] is True
        assert data["created"]["assigned_number"] == "3507001201"

    def test_add_without_active_nip_still_succeeds(self, client, member):
        iid = run(seed_institution(member.identity_id, payment_status="paid"))
        response = self._add(client, member, iid)
        assert response.status_code == 201
        data = response.json()
        assert data["created"]["assigned_number"] is None
        assert data["issuance"]["reason"] == "institution_not_activated"

    def test_unpaid_is_payment_required(self, client, member):
        iid = run(seed_institution(member.identity_id))
        response = self._add(client, member, iid)
        assert response.status_code == 402
        assert response.json()["error"]["details"]["reason"] == "unpaid"

    def test_fourth_member_conflicts(self, client, member, institution):
        for i in range(3):
            assert self._add(client, member, institution, name=f"Crew {i}").status_code == 201
        response = self._add(client, member, institution, name="Crew 4")
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "MEMBERSHIP_SLOT_EXHAUSTED"

    def test_bad_whatsapp_rejected(self, client, member, institution):
        response = client.post(
            f"/api/v1/institutions/{institution}/crew",
            json={"name": "Ahmad", "whatsapp": "12345", "skill": "Desain"},
            headers=auth_header(member.identity_id),
        )
        assert response.status_code == 422

    def test_number_endpoint_is_idempotent(self, client, member, institution):
        crew_id = self._add(client, member, institution).json()["created"]["crew_id"]
        headers = auth_header(member.identity_id)
        first = client.post(f"/api/v1/crew/{crew_id}/number", headers=headers)
        second = client.post(f"/api/v1/crew/{crew_id}/number", headers=headers)
        assert first.json()["assigned_number"] == second.json()["assigned_number"] == "3507001201"

    def test_role_change_and_remove(self, client, member, institution):
        crew_id = self._add(client, member, institution).json()["created"]["crew_id"]
        headers = auth_header(member.identity_id)

        changed = client.patch(f"/api/v1/crew/{crew_id}/role", json={"role_code": "coordinator"}, headers=headers)
        assert changed.status_code == 200
        assert changed.json()["role_code"] == "coordinator"

        assert client.delete(f"/api/v1/crew/{crew_id}", headers=headers).status_code == 204
        assert client.get(f"/api/v1/crew/{crew_id}", headers=headers).status_code == 404


class TestAdministration:
    def test_activation_requires_finance_or_central(self, client, member):
        iid = run(seed_institution(member.identity_id))
        response = client.post(
            f"/api/v1/institutions/{iid}/activation", json={"nip": "3507001"}, headers=auth_header(member.identity_id),
        )
        assert response.status_code == 403

        finance = run(seed_profile(role=Role.FINANCE_ADMIN, region_ref=None))
        response = client.post(
            f"/api/v1/institutions/{iid}/activation", json={"nip": "3507001"}, headers=auth_header(finance.identity_id),
        )
        assert response.status_code == 200
        assert response.json()["payment_status"] == "paid"
        assert response.json()["nip_active"] is True

    def test_regional_admin_decides_own_region_once(self, client):
        admin = run(seed_profile(role=Role.REGIONAL_ADMIN, region_ref="jatim"))
        applicant = run(seed_profile(role=Role.MEMBER, status=AccountStatus.PENDING, region_ref="jatim"))
        url = f"/api/v1/profiles/{applicant.identity_id}/decision"

        response = client.post(url, json={"status": "active"}, headers=auth_header(admin.identity_id))
        assert response.status_code == 200
        assert response.json()["account_status"] == "active"

        again = client.post(url, json={"status": "rejected"}, headers=auth_header(admin.identity_id))
        assert again.status_code == 409

    def test_regional_admin_cannot_decide_other_region(self, client):
        admin = run(seed_profile(role=Role.REGIONAL_ADMIN, region_ref="jabar"))
        applicant = run(seed_profile(role=Role.MEMBER, status=AccountStatus.PENDING, region_ref="jatim"))
        response = client.post(
            f"/api/v1/profiles/{applicant.identity_id}/decision",
            json={"status": "active"},
            headers=auth_header(admin.identity_id),
        )
        assert response.status_code == 403

    def test_decision_must_be_final_state(self, client):
        admin = run(seed_profile(role=Role.REGIONAL_ADMIN, region_ref="jatim"))
        response = client.post(
            f"/api/v1/profiles/{uuid4()}/decision", json={"status": "pending"}, headers=auth_header(admin.identity_id),
        )
        assert response.status_code == 422


class TestSubmissions:
    def test_submit_and_verify(self, client, monkeypatch):
        monkeypatch.setattr(pending_submissions, "generate_verification_code", lambda: "424242")
        response = client.post(
            "/api/v1/submissions/claim", json={"owner_key": "admin@alhikmah.sch.id", "payload": {"nspp": "5100"}},
        )
        assert response.status_code == 202
        assert "code" not in response.json()

        verified = client.post(
            "/api/v1/submissions/claim/verify", json={"owner_key": "admin@alhikmah.sch.id", "code": "424242"},
        )
        assert verified.status_code == 200
        assert verified.json()["status"] == "verified_pending_payment"

    def test_unknown_kind(self, client):
        response = client.post("/api/v1/submissions/other", json={"owner_key": "someone", "payload": {}})
        assert response.status_code == 422

    def test_resubmit_too_soon(self, client):
        body = {"owner_key": "admin@alhikmah.sch.id", "payload": {}}
        assert client.post("/api/v1/submissions/registration", json=body).status_code == 202
        response = client.post("/api/v1/submissions/registration", json=body)
        assert response.status_code == 429
        assert response.json()["error"]["code"] == "MEMBERSHIP_RATE_LIMITED"
