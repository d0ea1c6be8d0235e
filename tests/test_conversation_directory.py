from __future__ import annotations

from datetime import timedelta

from service_connect.core.identifiers import as_utc, utcnow
from service_connect.services import conversation_service


def test_find_between_ignores_argument_order(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    carol = make_user("Carol")
    conversation = conversation_service.create(db, user_a=alice, user_b=bob)
    db.commit()

    assert conversation_service.find_between(db, alice.id, bob.id).id == conversation.id
    assert conversation_service.find_between(db, bob.id, alice.id).id == conversation.id
    assert conversation_service.find_between(db, alice.id, carol.id) is None
    assert conversation_service.find_between(db, alice.id, alice.id) is None


def test_find_between_skips_inactive_conversations(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    conversation = conversation_service.create(db, user_a=alice, user_b=bob)
    conversation_service.deactivate(db, conversation)
    db.commit()

    assert conversation_service.find_between(db, alice.id, bob.id) is None


def test_create_starts_with_empty_summary(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")

    conversation = conversation_service.create(db, user_a=alice, user_b=bob)
    db.commit()

    assert sorted(conversation.participant_ids) == sorted([alice.id, bob.id])
    assert conversation.unread_count == {alice.id: 0, bob.id: 0}
    assert conversation.last_message_content == ""
    assert conversation.last_message_sender_id is None
    assert conversation.is_active is True


def test_update_last_message_truncates_preview(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    conversation = conversation_service.create(db, user_a=alice, user_b=bob)

    conversation_service.update_last_message(db, conversation, content="z" * 250, sender_id=alice.id)
    db.commit()
    db.expire_all()

    assert conversation.last_message_content == "z" * 100
    assert conversation.unread_count[bob.id] == 1
    assert conversation.unread_count[alice.id] == 0


def test_update_last_message_keeps_latest_timestamp(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    conversation = conversation_service.create(db, user_a=alice, user_b=bob)
    later = utcnow() + timedelta(minutes=5)

    conversation_service.update_last_message(db, conversation, content="new", sender_id=alice.id, timestamp=later)
    conversation_service.update_last_message(
        db, conversation, content="stale", sender_id=bob.id, timestamp=later - timedelta(minutes=10)
    )

    assert as_utc(conversation.last_message_at) == later
    assert conversation.last_message_content == "stale"


def test_list_for_user_orders_by_activity(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    carol = make_user("Carol")
    older = conversation_service.create(db, user_a=alice, user_b=bob)
    newer = conversation_service.create(db, user_a=alice, user_b=carol)
    conversation_service.update_last_message(
        db, older, content="ping", sender_id=bob.id, timestamp=utcnow() + timedelta(seconds=1)
    )
    db.commit()

    assert [item.id for item in conversation_service.list_for_user(db, alice.id)] == [older.id, newer.id]
    assert [item.id for item in conversation_service.list_for_user(db, carol.id)] == [newer.id]


def test_mark_read_and_decrement_never_go_negative(db, make_user):
    alice = make_user("Alice")
    bob = make_user("Bob")
    conversation = conversation_service.create(db, user_a=alice, user_b=bob)
    conversation_service.update_last_message(db, conversation, content="a", sender_id=alice.id)
    conversation_service.update_last_message(db, conversation, content="b", sender_id=alice.id)

    conversation_service.decrement_unread(db, conversation, bob.id)
    db.commit()
    db.expire_all()
    assert conversation.unread_count[bob.id] == 1

    conversation_service.mark_read(db, conversation, bob.id)
    conversation_service.decrement_unread(db, conversation, bob.id)
    db.commit()
    db.expire_all()
    assert conversation.unread_count[bob.id] == 0


def test_get_conversation_rejects_malformed_ids(db):
    assert conversation_service.get_conversation(db, "not-an-id") is None
    assert conversation_service.get_conversation(db, "33333333-3333-3333-3333-333333333333") is None
