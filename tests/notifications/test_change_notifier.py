import pytest
from fastapi import status
from starlette.websockets import WebSocketDisconnect

from app.services.change_notifier import ChangeEvent, ChangeNotifier, change_notifier
from app.services.folder_service import create_folder
from app.services.soft_delete import soft_delete_folder_with_contents
from tests.mock_data import OTHER_STUDENT_ID, STUDENT_ID, token_for


class TestChangeNotifier:
    """Explicit subscribe / unsubscribe change feed"""

    def test_subscribe_and_unsubscribe(self):
        notifier = ChangeNotifier()
        received = []

        subscription = notifier.subscribe(received.append)
        notifier.publish(ChangeEvent("folders", "insert", ("a",), STUDENT_ID))
        subscription.unsubscribe()
        notifier.publish(ChangeEvent("folders", "insert", ("b",), STUDENT_ID))

        assert [event.ids for event in received] == [("a",)]
        assert notifier.subscriber_count == 0
        assert subscription.active is False

    def test_owner_filter(self):
        notifier = ChangeNotifier()
        received = []

        with notifier.subscribe(received.append, owner_id=STUDENT_ID):
            notifier.publish(ChangeEvent("files", "update", ("x",), OTHER_STUDENT_ID))
            notifier.publish(ChangeEvent("files", "update", ("y",), STUDENT_ID))

        assert [event.ids for event in received] == [("y",)]
        assert notifier.subscriber_count == 0

    def test_empty_events_are_dropped(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(received.append)

        notifier.publish(ChangeEvent("files", "update", (), STUDENT_ID))

        assert received == []

    def test_failing_subscriber_does_not_break_others(self):
        notifier = ChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe(broken)
        notifier.subscribe(received.append)
        notifier.publish(ChangeEvent("folders", "delete", ("a",), STUDENT_ID))

        assert len(received) == 1

    def test_engines_publish_after_commit(self, db_session):
        received = []

        with change_notifier.subscribe(received.append, owner_id=STUDENT_ID):
            folder = create_folder(db_session, STUDENT_ID, "A")
            create_folder(db_session, STUDENT_ID, "B", folder.id)
            soft_delete_folder_with_contents(db_session, folder.id, STUDENT_ID)

        actions = [(event.table, event.action) for event in received]
        assert actions == [
            ("folders", "insert"),
            ("folders", "insert"),
            ("folders", "update"),
        ]
        assert len(received[-1].ids) == 2


class TestChangeFeedWebsocket:
    """Test cases for WS /api/v1/ws/files"""

    def test_receives_own_changes(self, client, student_headers):
        token = token_for(STUDENT_ID)

        with client.websocket_connect(f"/api/v1/ws/files?token={token}") as websocket:
            response = client.post("/api/v1/folders", json={"name": "A"}, headers=student_headers)
            assert response.status_code == status.HTTP_201_CREATED

            message = websocket.receive_json()

        assert message["table"] == "folders"
        assert message["action"] == "insert"
        assert message["ids"] == [response.json()["id"]]
        assert message["owner_id"] == STUDENT_ID

    def test_ping(self, client):
        token = token_for(STUDENT_ID)

        with client.websocket_connect(f"/api/v1/ws/files?token={token}") as websocket:
            websocket.send_text("ping")
            assert websocket.receive_text() == "pong"

    def test_unsubscribes_on_disconnect(self, client):
        token = token_for(STUDENT_ID)
        before = change_notifier.subscriber_count

        with client.websocket_connect(f"/api/v1/ws/files?token={token}") as websocket:
            websocket.send_text("ping")
            websocket.receive_text()
            assert change_notifier.subscriber_count == before + 1

        assert change_notifier.subscriber_count == before

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/ws/files") as websocket:
                websocket.receive_json()

    def test_rejects_foreign_owner(self, client):
        token = token_for(STUDENT_ID)

        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(
                f"/api/v1/ws/files?token={token}&owner_id={OTHER_STUDENT_ID}"
            ) as websocket:
                websocket.receive_json()
