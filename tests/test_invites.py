"""Invitation creation, validation and acceptance tests."""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

import models
from services.errors import ConflictError
from services.invite_service import InviteService


def invite(client, auth_headers, user, event_id, email):
    return client.post(
        f"/events/{event_id}/participants",
        json={"identifier": email, "type": "email"},
        headers=auth_headers(user),
    )


def invite_code(response):
    return response.json()["inviteLink"].rsplit("/", 1)[1]


def test_invite_unknown_email_creates_link(client, make_user, auth_headers, make_event):
    owner = make_user()
    event = make_event(owner)

    response = invite(client, auth_headers, owner, event["event_id"], "guest@example.org")
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Invitation created successfully"
    assert body["userExists"] is False
    assert body["inviteLink"].startswith("https://app.test/invite/")
    assert len(invite_code(response)) == 8

    again = invite(client, auth_headers, owner, event["event_id"], "guest@example.org")
    assert again.json()["message"] == "Invitation already sent"
    assert again.json()["inviteLink"] == body["inviteLink"]

    details = client.get(f"/events/{event['event_id']}", headers=auth_headers(owner)).json()
    assert [i["email"] for i in details["pendingInvitations"]] == ["guest@example.org"]


def test_invite_existing_user_adds_pending_participant(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    friend = make_user(email="friend@example.org")
    event = make_event(owner)

    response = invite(client, auth_headers, owner, event["event_id"], "friend@example.org")
    body = response.json()
    assert body["message"] == "Participant added successfully"
    assert body["userExists"] is True
    assert "inviteLink" not in body

    participant = db_session.query(models.EventParticipant).filter_by(
        event_id=event["event_id"], user_id=friend.user_id
    ).one()
    assert participant.status == "pending"

    again = invite(client, auth_headers, owner, event["event_id"], "friend@example.org")
    assert again.json()["message"] == "User is already a participant"


def test_invite_invalid_email_and_non_creator(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    member = make_user()
    event = make_event(owner)
    db_session.add(models.EventParticipant(event_id=event["event_id"], user_id=member.user_id, status="going"))
    db_session.commit()

    response = invite(client, auth_headers, owner, event["event_id"], "not-an-email")
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid email format"

    response = invite(client, auth_headers, member, event["event_id"], "x@example.org")
    assert response.status_code == 403


def test_validate_and_accept_invite(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    event = make_event(owner)
    code = invite_code(invite(client, auth_headers, owner, event["event_id"], "guest@example.org"))

    response = client.get(f"/invites/{code}")
    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["event_title"] == "Summer trip"
    assert body["invited_email"] == "guest@example.org"

    guest = make_user(email="guest@example.org")
    response = client.post(f"/invites/{code}/accept", headers=auth_headers(guest))
    assert response.status_code == 200
    assert response.json() == {"message": "Successfully joined event", "event_id": event["event_id"]}

    db_session.expire_all()
    stored_event = db_session.get(models.Event, event["event_id"])
    assert stored_event.participants_count == 2
    participant = db_session.query(models.EventParticipant).filter_by(user_id=guest.user_id).one()
    assert participant.status == "going"

    response = client.post(f"/invites/{code}/accept", headers=auth_headers(guest))
    assert response.status_code == 409
    assert response.json()["detail"] == "Invite already accepted"

    response = client.get(f"/invites/{code}")
    assert response.json()["valid"] is False


def test_accept_invite_wrong_email(client, make_user, auth_headers, make_event):
    owner = make_user()
    event = make_event(owner)
    code = invite_code(invite(client, auth_headers, owner, event["event_id"], "guest@example.org"))

    intruder = make_user(email="intruder@example.org")
    response = client.post(f"/invites/{code}/accept", headers=auth_headers(intruder))
    assert response.status_code == 403
    detail = response.json()["detail"]
    assert detail["invited_email"] == "guest@example.org"
    assert detail["your_email"] == "intruder@example.org"


def test_accept_invite_already_participant(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    guest = make_user(email="guest@example.org")
    event = make_event(owner)

    invitation = models.EventInvitation(
        event_id=event["event_id"],
        email="guest@example.org",
        invite_code="abcd1234",
        status="pending",
        expires_at=models.utcnow() + timedelta(days=30),
    )
    db_session.add(invitation)
    db_session.add(models.EventParticipant(event_id=event["event_id"], user_id=guest.user_id, status="pending"))
    db_session.commit()

    response = client.post("/invites/abcd1234/accept", headers=auth_headers(guest))
    assert response.status_code == 409
    assert response.json()["detail"] == "You are already a participant in this event"


def test_expired_invite(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    event = make_event(owner)
    db_session.add(models.EventInvitation(
        event_id=event["event_id"],
        email="late@example.org",
        invite_code="deadbeef",
        status="pending",
        expires_at=models.utcnow() - timedelta(minutes=1),
    ))
    db_session.commit()

    response = client.get("/invites/deadbeef")
    assert response.status_code == 410
    assert response.json()["detail"] == {"error": "Invite has expired", "valid": False}

    db_session.expire_all()
    invitation = db_session.query(models.EventInvitation).filter_by(invite_code="deadbeef").one()
    assert invitation.status == "expired"


def test_unknown_invite(client):
    assert client.get("/invites/00000000").status_code == 404


def test_rescind_invitation(client, make_user, auth_headers, make_event):
    owner = make_user()
    event = make_event(owner)
    invite(client, auth_headers, owner, event["event_id"], "guest@example.org")

    response = client.delete(f"/events/{event['event_id']}/invitations/guest@example.org", headers=auth_headers(owner))
    assert response.status_code == 200

    response = client.delete(f"/events/{event['event_id']}/invitations/guest@example.org", headers=auth_headers(owner))
    assert response.status_code == 404


def test_invite_matches_registered_email_case_insensitively(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    friend = make_user(email="guest@example.org")
    event = make_event(owner)

    body = invite(client, auth_headers, owner, event["event_id"], "Guest@Example.org").json()
    assert body["userExists"] is True
    assert "inviteLink" not in body
    assert db_session.query(models.EventInvitation).count() == 0
    assert db_session.query(models.EventParticipant).filter_by(user_id=friend.user_id).one().status == "pending"


@pytest.mark.parametrize("failure, expected", [
    (SQLAlchemyError("connection lost"), SQLAlchemyError),
    (IntegrityError("INSERT INTO event_participants", {}, Exception("duplicate key")), ConflictError),
])
def test_accept_invite_failure_rolls_back_everything(make_user, make_event, db_session, failure, expected):
    owner = make_user()
    guest = make_user(email="guest@example.org")
    event = make_event(owner)
    db_session.add(models.EventInvitation(
        event_id=event["event_id"],
        email="guest@example.org",
        invite_code="feed0123",
        status="pending",
        expires_at=models.utcnow() + timedelta(days=30),
    ))
    db_session.commit()

    service = InviteService(db_session)
    with patch.object(db_session, "commit", side_effect=failure):
        with pytest.raises(expected):
            service.accept_invite("feed0123", guest)

    db_session.expire_all()
    invitation = db_session.query(models.EventInvitation).filter_by(invite_code="feed0123").one()
    assert invitation.status == "pending"
    assert db_session.get(models.Event, event["event_id"]).participants_count == 1
    assert db_session.query(models.EventParticipant).filter_by(
        event_id=event["event_id"], user_id=guest.user_id
    ).count() == 0
