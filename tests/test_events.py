"""Event CRUD, membership and participant count tests."""

from datetime import datetime

import models


def test_create_event_adds_creator(client, make_user, auth_headers, make_event, db_session):
    user = make_user()
    event = make_event(user)

    assert event["participants_count"] == 1
    assert event["creator_id"] == user.user_id

    participant = db_session.query(models.EventParticipant).filter_by(event_id=event["event_id"]).one()
    assert participant.user_id == user.user_id
    assert participant.status == "accepted"


def test_create_event_end_before_start(client, make_user, auth_headers):
    user = make_user()
    response = client.post(
        "/events",
        json={"title": "Bad", "start_date": "2026-07-10T10:00:00", "end_date": "2026-07-01T10:00:00"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "end date cannot be before start date"


def test_create_event_normalizes_utc_offsets(client, make_user, auth_headers, db_session):
    user = make_user()
    headers = auth_headers(user)

    response = client.post(
        "/events",
        json={"title": "Mixed", "start_date": "2026-07-10T10:00:00Z", "end_date": "2026-07-01T10:00:00"},
        headers=headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "end date cannot be before start date"

    response = client.post(
        "/events",
        json={"title": "Paris", "start_date": "2026-07-01T10:00:00+02:00", "end_date": "2026-07-02T10:00:00"},
        headers=headers,
    )
    assert response.status_code == 201
    stored = db_session.get(models.Event, response.json()["event"]["event_id"])
    assert stored.start_date == datetime(2026, 7, 1, 8, 0)
    assert stored.start_date.tzinfo is None


def test_get_event_details(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)

    response = client.get(f"/events/{event['event_id']}", headers=auth_headers(user))
    assert response.status_code == 200
    body = response.json()
    assert body["event"]["title"] == "Summer trip"
    assert [p["user_id"] for p in body["participants"]] == [user.user_id]
    assert body["pendingInvitations"] == []


def test_outsider_gets_not_found(client, make_user, auth_headers, make_event):
    owner = make_user()
    outsider = make_user()
    event = make_event(owner)

    response = client.get(f"/events/{event['event_id']}", headers=auth_headers(outsider))
    assert response.status_code == 404
    assert client.get("/events/9999", headers=auth_headers(owner)).status_code == 404


def test_my_events_lists_created_and_joined(client, make_user, auth_headers, make_event, db_session):
    alice = make_user()
    bob = make_user()
    own = make_event(alice, title="Mine")
    other = make_event(bob, title="Bob's")
    make_event(bob, title="Not shared")

    db_session.add(models.EventParticipant(event_id=other["event_id"], user_id=alice.user_id, status="going"))
    db_session.commit()

    response = client.get("/events/me", headers=auth_headers(alice))
    assert response.status_code == 200
    titles = {e["title"] for e in response.json()["events"]}
    assert titles == {own["title"], other["title"]}


def test_update_end_before_existing_start(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user, start_date="2026-07-10T10:00:00", end_date=None)

    response = client.put(
        f"/events/{event['event_id']}",
        json={"end_date": "2026-07-01T10:00:00"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "end date cannot be before existing start date"


def test_update_with_utc_suffixed_dates(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user, start_date="2026-07-10T10:00:00Z", end_date=None)
    url = f"/events/{event['event_id']}"

    response = client.put(url, json={"end_date": "2026-07-01T10:00:00Z"}, headers=auth_headers(user))
    assert response.status_code == 400
    assert response.json()["detail"] == "end date cannot be before existing start date"

    response = client.put(url, json={"end_date": "2026-07-12T10:00:00Z"}, headers=auth_headers(user))
    assert response.status_code == 200


def test_update_start_after_existing_end(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)

    response = client.put(
        f"/events/{event['event_id']}",
        json={"start_date": "2026-08-01T10:00:00"},
        headers=auth_headers(user),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "start date cannot be after existing end date"


def test_update_remove_end_date(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)

    response = client.put(
        f"/events/{event['event_id']}",
        json={"title": "Renamed", "remove_end_date": True},
        headers=auth_headers(user),
    )
    assert response.status_code == 200
    updated = response.json()["event"]
    assert updated["title"] == "Renamed"
    assert updated["end_date"] is None


def test_update_requires_fields_and_creator(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    member = make_user()
    event = make_event(owner)
    db_session.add(models.EventParticipant(event_id=event["event_id"], user_id=member.user_id, status="going"))
    db_session.commit()

    response = client.put(f"/events/{event['event_id']}", json={}, headers=auth_headers(owner))
    assert response.status_code == 400
    assert response.json()["detail"] == "no fields to update"

    response = client.put(f"/events/{event['event_id']}", json={"title": "x"}, headers=auth_headers(member))
    assert response.status_code == 403


def test_delete_event_removes_dependents(client, make_user, auth_headers, make_event, db_session):
    user = make_user()
    event = make_event(user)
    event_id = event["event_id"]

    first = client.post(f"/events/{event_id}/messages", json={"content": "hello"}, headers=auth_headers(user)).json()
    client.post(
        f"/events/{event_id}/messages",
        json={"content": "reply", "parent_id": first["message_id"]},
        headers=auth_headers(user),
    )
    suggestion = models.GiftSuggestion(event_id=event_id, user_id=user.user_id, name_en="Book", name_fr="Livre", creation_mode="manual")
    db_session.add(suggestion)
    db_session.commit()
    db_session.add(models.GiftSuggestionVote(suggestion_id=suggestion.suggestion_id, user_id=user.user_id, vote_type="upvote"))
    db_session.commit()

    response = client.delete(f"/events/{event_id}", headers=auth_headers(user))
    assert response.status_code == 200

    db_session.expire_all()
    assert db_session.query(models.Event).count() == 0
    assert db_session.query(models.EventMessage).count() == 0
    assert db_session.query(models.GiftSuggestion).count() == 0
    assert db_session.query(models.GiftSuggestionVote).count() == 0
    assert db_session.query(models.EventParticipant).count() == 0


def test_participant_status_and_count(client, make_user, auth_headers, make_event, db_session):
    owner = make_user()
    member = make_user()
    event = make_event(owner)
    event_id = event["event_id"]
    db_session.add(models.EventParticipant(event_id=event_id, user_id=member.user_id, status="pending"))
    db_session.commit()

    response = client.put(f"/events/{event_id}/participant-status", json={"status": "declined"}, headers=auth_headers(member))
    assert response.status_code == 200
    assert response.json()["status"] == "declined"

    details = client.get(f"/events/{event_id}", headers=auth_headers(owner)).json()
    assert details["event"]["participants_count"] == 1

    response = client.put(f"/events/{event_id}/participant-status", json={"status": "maybe"}, headers=auth_headers(member))
    assert response.status_code == 400


def test_participant_status_requires_membership(client, make_user, auth_headers, make_event):
    owner = make_user()
    outsider = make_user()
    event = make_event(owner)

    response = client.put(
        f"/events/{event['event_id']}/participant-status",
        json={"status": "going"},
        headers=auth_headers(outsider),
    )
    assert response.status_code == 403


def test_sync_participant_counts_adds_creator(db_session, make_user):
    from services.event_service import EventService

    user = make_user()
    event = models.Event(creator_id=user.user_id, title="Legacy", start_date=models.utcnow(), participants_count=0)
    db_session.add(event)
    db_session.commit()

    assert EventService(db_session).sync_participant_counts() == 1

    db_session.refresh(event)
    assert event.participants_count == 1
    creator_row = db_session.query(models.EventParticipant).filter_by(event_id=event.event_id).one()
    assert creator_row.status == "going"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "message": "Service is healthy"}
