"""Manual gift suggestions and voting tests."""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import IntegrityError

import models
from services.errors import ConflictError
from services.gift_service import GiftService


def add_member(db_session, event_id, user, status="going"):
    db_session.add(models.EventParticipant(event_id=event_id, user_id=user.user_id, status=status))
    db_session.commit()


def create_manual(client, headers, event_id, **fields):
    payload = {"event_id": event_id, "mode": "manual", "name_en": "Cookbook", "category": "Books"}
    payload.update(fields)
    return client.post("/gift-suggestions", json=payload, headers=headers)


def test_manual_suggestion_copies_missing_language(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)

    response = create_manual(client, auth_headers(user), event["event_id"], url="www.Fnac.com/livre")
    assert response.status_code == 201
    body = response.json()
    assert body["name_en"] == "Cookbook"
    assert body["name_fr"] == "Cookbook"
    assert body["creation_mode"] == "manual"
    assert body["url"] == "https://www.fnac.com/livre"
    assert body["can_edit"] is True
    assert body["upvotes"] == 0 and body["downvotes"] == 0


def test_manual_suggestion_validation(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)

    response = create_manual(client, auth_headers(user), event["event_id"], name_en=None)
    assert response.status_code == 400

    response = create_manual(client, auth_headers(user), event["event_id"], url="https://example.com/gift")
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid URL")


def test_outsider_cannot_add_suggestion(client, make_user, auth_headers, make_event):
    owner = make_user()
    outsider = make_user()
    event = make_event(owner)

    response = create_manual(client, auth_headers(outsider), event["event_id"])
    assert response.status_code == 403


def test_vote_toggle_and_switch(client, make_user, auth_headers, make_event, db_session):
    alice = make_user()
    bob = make_user()
    event = make_event(alice)
    add_member(db_session, event["event_id"], bob)
    suggestion_id = create_manual(client, auth_headers(alice), event["event_id"]).json()["suggestion_id"]
    url = f"/gift-suggestions/{suggestion_id}/vote"

    response = client.post(url, json={"vote_type": "upvote"}, headers=auth_headers(bob))
    assert response.json() == {"message": "Vote recorded", "user_vote": "upvote", "upvotes": 1, "downvotes": 0}

    response = client.post(url, json={"vote_type": "downvote"}, headers=auth_headers(bob))
    assert response.json() == {"message": "Vote updated", "user_vote": "downvote", "upvotes": 0, "downvotes": 1}

    response = client.post(url, json={"vote_type": "downvote"}, headers=auth_headers(bob))
    assert response.json() == {"message": "Vote removed", "user_vote": None, "upvotes": 0, "downvotes": 0}

    assert db_session.query(models.GiftSuggestionVote).count() == 0


def test_list_includes_counts_and_own_vote(client, make_user, auth_headers, make_event, db_session):
    alice = make_user()
    bob = make_user()
    event = make_event(alice)
    add_member(db_session, event["event_id"], bob)
    suggestion_id = create_manual(client, auth_headers(alice), event["event_id"]).json()["suggestion_id"]

    client.post(f"/gift-suggestions/{suggestion_id}/vote", json={"vote_type": "upvote"}, headers=auth_headers(alice))
    client.post(f"/gift-suggestions/{suggestion_id}/vote", json={"vote_type": "upvote"}, headers=auth_headers(bob))

    response = client.get(f"/events/{event['event_id']}/gift-suggestions", headers=auth_headers(bob))
    assert response.status_code == 200
    [item] = response.json()
    assert item["upvotes"] == 2
    assert item["user_vote"] == "upvote"
    assert item["can_edit"] is False


def test_remove_vote(client, make_user, auth_headers, make_event):
    user = make_user()
    event = make_event(user)
    suggestion_id = create_manual(client, auth_headers(user), event["event_id"]).json()["suggestion_id"]
    url = f"/gift-suggestions/{suggestion_id}/vote"

    assert client.delete(url, headers=auth_headers(user)).status_code == 404

    client.post(url, json={"vote_type": "upvote"}, headers=auth_headers(user))
    response = client.delete(url, headers=auth_headers(user))
    assert response.status_code == 200
    assert response.json()["upvotes"] == 0


def test_vote_requires_membership(client, make_user, auth_headers, make_event):
    owner = make_user()
    outsider = make_user()
    event = make_event(owner)
    suggestion_id = create_manual(client, auth_headers(owner), event["event_id"]).json()["suggestion_id"]

    response = client.post(
        f"/gift-suggestions/{suggestion_id}/vote",
        json={"vote_type": "upvote"},
        headers=auth_headers(outsider),
    )
    assert response.status_code == 403
    assert client.post("/gift-suggestions/999/vote", json={"vote_type": "upvote"}, headers=auth_headers(owner)).status_code == 404


def test_update_and_delete_owner_only(client, make_user, auth_headers, make_event, db_session):
    alice = make_user()
    bob = make_user()
    event = make_event(alice)
    add_member(db_session, event["event_id"], bob)
    suggestion_id = create_manual(client, auth_headers(alice), event["event_id"]).json()["suggestion_id"]

    response = client.put(f"/gift-suggestions/{suggestion_id}", json={"price_range": "20-30€"}, headers=auth_headers(bob))
    assert response.status_code == 403

    response = client.put(f"/gift-suggestions/{suggestion_id}", json={"price_range": "20-30€"}, headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["price_range"] == "20-30€"

    client.post(f"/gift-suggestions/{suggestion_id}/vote", json={"vote_type": "upvote"}, headers=auth_headers(bob))

    assert client.delete(f"/gift-suggestions/{suggestion_id}", headers=auth_headers(bob)).status_code == 403
    response = client.delete(f"/gift-suggestions/{suggestion_id}", headers=auth_headers(alice))
    assert response.json() == {"message": "Gift suggestion deleted successfully"}

    db_session.expire_all()
    assert db_session.query(models.GiftSuggestionVote).count() == 0


def test_concurrent_first_vote_conflict(client, make_user, auth_headers, make_event, db_session):
    alice = make_user()
    event = make_event(alice)
    suggestion_id = create_manual(client, auth_headers(alice), event["event_id"]).json()["suggestion_id"]

    duplicate = IntegrityError("INSERT INTO gift_suggestion_votes", {}, Exception("uq_vote_suggestion_user"))
    with patch.object(db_session, "commit", side_effect=duplicate):
        with pytest.raises(ConflictError) as exc_info:
            GiftService(db_session).vote(suggestion_id, alice, "upvote")

    assert exc_info.value.status_code == 409
    db_session.expire_all()
    assert db_session.query(models.GiftSuggestionVote).count() == 0

    response = client.post(f"/gift-suggestions/{suggestion_id}/vote", json={"vote_type": "upvote"}, headers=auth_headers(alice))
    assert response.json()["upvotes"] == 1
