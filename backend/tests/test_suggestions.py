"""Tests for volunteer donor suggestions."""
from donorlink.models.notification import Notification
from tests.conftest import create_test_user, create_test_request


def _suggest(client, request_id, volunteer_id, donor_id, note=None):
    return client.post(f"/api/donation-requests/{request_id}/suggestions", json={
        "volunteer_id": volunteer_id, "donor_id": donor_id, "note": note,
    })


def _setup(client):
    requester = create_test_user(client, name="Requester", blood_group="A+")
    volunteer = create_test_user(client, name="Volunteer", role="volunteer")
    donor = create_test_user(client, name="Donor")
    req = create_test_request(client, requester["user_id"])
    return requester, volunteer, donor, req


class TestSuggestDonor:

    def test_suggestion_recorded_without_state_change(self, client):
        _, volunteer, donor, req = _setup(client)
        resp = _suggest(client, req["request_id"], volunteer["user_id"], donor["user_id"], note="Lives nearby")
        assert resp.status_code == 204

        data = client.get(f"/api/donation-requests/{req['request_id']}").json()
        assert data["status"] == "pending"
        assert data["donor_id"] is None
        assert len(data["status_history"]) == 1
        assert data["volunteer_suggestions"][0]["donor_id"] == donor["user_id"]
        assert data["volunteer_suggestions"][0]["note"] == "Lives nearby"

    def test_donor_and_requester_notified(self, client, db):
        requester, volunteer, donor, req = _setup(client)
        _suggest(client, req["request_id"], volunteer["user_id"], donor["user_id"])
        suggested = {n.recipient_id: n for n in db.query(Notification).filter(Notification.kind == "suggested")}
        assert set(suggested) == {donor["user_id"], requester["user_id"]}
        assert suggested[donor["user_id"]].title == "You Have Been Suggested as a Donor"
        assert suggested[requester["user_id"]].title == "Potential Donor Found"
        assert all(n.priority.value == "medium" for n in suggested.values())

    def test_multiple_volunteers_may_suggest(self, client):
        _, volunteer, donor, req = _setup(client)
        admin = create_test_user(client, name="Admin", role="admin")
        other = create_test_user(client, name="Other Donor")
        assert _suggest(client, req["request_id"], volunteer["user_id"], donor["user_id"]).status_code == 204
        assert _suggest(client, req["request_id"], admin["user_id"], other["user_id"]).status_code == 204
        data = client.get(f"/api/donation-requests/{req['request_id']}").json()
        assert len(data["volunteer_suggestions"]) == 2

    def test_donor_cannot_suggest(self, client):
        _, _, donor, req = _setup(client)
        other = create_test_user(client, name="Other Donor")
        resp = _suggest(client, req["request_id"], donor["user_id"], other["user_id"])
        assert resp.status_code == 403

    def test_ineligible_donor_rejected(self, client):
        _, volunteer, _, req = _setup(client)
        wrong = create_test_user(client, name="Wrong Group", blood_group="B-")
        resp = _suggest(client, req["request_id"], volunteer["user_id"], wrong["user_id"])
        assert resp.status_code == 400
        assert resp.json()["rule"] == "blood_group_mismatch"

    def test_non_donor_rejected(self, client):
        _, volunteer, _, req = _setup(client)
        admin = create_test_user(client, name="Admin", role="admin")
        resp = _suggest(client, req["request_id"], volunteer["user_id"], admin["user_id"])
        assert resp.status_code == 400
        assert resp.json()["rule"] == "not_a_donor"

    def test_not_pending_is_invalid_state(self, client):
        _, volunteer, donor, req = _setup(client)
        other = create_test_user(client, name="Other Donor")
        client.post(f"/api/donation-requests/{req['request_id']}/accept", json={"donor_id": donor["user_id"]})
        resp = _suggest(client, req["request_id"], volunteer["user_id"], other["user_id"])
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_state"

    def test_unknown_request(self, client):
        _, volunteer, donor, _ = _setup(client)
        resp = _suggest(client, "missing", volunteer["user_id"], donor["user_id"])
        assert resp.status_code == 404
