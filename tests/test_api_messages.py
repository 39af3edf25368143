"""HTTP tests for direct messages and notifications."""

from stores import MessageStore


def send(client, headers, receiver, content="hello"):
    return client.post("/api/messages", json={"receiver_id": receiver.id, "content": content}, headers=headers)


def test_conversation_includes_both_directions(client, alice, bob, carol, auth):
    assert send(client, auth(alice), bob, "hi bob").status_code == 201
    assert send(client, auth(bob), alice, "hi alice").status_code == 201
    send(client, auth(carol), bob, "not for alice")

    messages = client.get(f"/api/messages/{bob.id}", headers=auth(alice)).json()
    assert [(m["content"], m["sender_name"]) for m in messages] == [("hi bob", "Alice"), ("hi alice", "Bob")]
    assert all(m["message_type"] == "direct" for m in messages)


def test_send_validation(client, alice, auth):
    missing = "0123456789abcdef01234567"
    response = client.post("/api/messages", json={"receiver_id": missing, "content": "x"}, headers=auth(alice))
    assert response.status_code == 404
    assert response.json() == {"error": "Receiver not found"}

    response = client.post("/api/messages", json={"receiver_id": alice.id, "content": "  "}, headers=auth(alice))
    assert response.status_code == 400

    response = client.post("/api/messages", json={"content": "x"}, headers=auth(alice))
    assert response.status_code == 400


def test_notifications_are_unread_direct_messages_newest_first(client, alice, bob, auth):
    send(client, auth(bob), alice, "first")
    send(client, auth(bob), alice, "second")
    send(client, auth(alice), bob, "outgoing")

    notifications = client.get("/api/notifications", headers=auth(alice)).json()
    assert [n["message"] for n in notifications] == ["second", "first"]
    assert notifications[0]["from_user"] == "Bob"
    assert notifications[0]["type"] == "message"
    assert notifications[0]["title"] == "New Message"
    assert notifications[0]["is_read"] is False


def test_mark_read_only_by_receiver(client, alice, bob, auth):
    message = send(client, auth(bob), alice, "ping").json()

    response = client.patch(f"/api/messages/{message['id']}/read", headers=auth(bob))
    assert response.status_code == 404

    for _ in range(2):
        response = client.patch(f"/api/messages/{message['id']}/read", headers=auth(alice))
        assert response.status_code == 200
        assert response.json()["is_read"] is True

    assert client.get("/api/notifications", headers=auth(alice)).json() == []
    everything = client.get("/api/notifications", params={"include_read": True}, headers=auth(alice)).json()
    assert [(n["message"], n["is_read"]) for n in everything] == [("ping", True)]
    assert client.patch("/api/messages/nope/read", headers=auth(alice)).status_code == 404


def test_notifications_window_is_bounded(client, db, alice, bob, auth):
    store = MessageStore(db)
    for i in range(55):
        store.insert_message(bob.id, alice.id, f"message {i}")

    notifications = client.get("/api/notifications", headers=auth(alice)).json()
    assert len(notifications) == 50
    assert notifications[0]["message"] == "message 54"


def test_group_tagged_messages_stay_out_of_direct_views(client, db, alice, bob, auth):
    MessageStore(db).insert_message(bob.id, alice.id, "group note", group_id="task_123")
    assert client.get(f"/api/messages/{bob.id}", headers=auth(alice)).json() == []
    assert client.get("/api/notifications", headers=auth(alice)).json() == []
