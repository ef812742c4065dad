from fastapi import status

from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemKind, ItemRef
from app.services.cycle_validator import can_reparent
from app.services.reparent import move_items
from app.services.soft_delete import soft_delete_folder_with_contents
from tests.mock_data import OTHER_STUDENT_ID, STUDENT_ID


def folder_ref(folder):
    return {"id": folder.id, "kind": "folder"}


def file_ref(file):
    return {"id": file.id, "kind": "file"}


class TestCanReparent:
    """Cycle validator decisions"""

    def test_allowed(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B")

        decision = can_reparent(db_session, ItemRef(id=b.id, kind=ItemKind.FOLDER), a.id)

        assert decision.allowed
        assert not decision.noop

    def test_into_itself(self, db_session, make_folder):
        a = make_folder("A")

        decision = can_reparent(db_session, ItemRef(id=a.id, kind=ItemKind.FOLDER), a.id)

        assert not decision.allowed

    def test_into_descendant(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)
        c = make_folder("C", b)

        decision = can_reparent(db_session, ItemRef(id=a.id, kind=ItemKind.FOLDER), c.id)

        assert not decision.allowed
        assert "subfolders" in decision.reason

    def test_same_parent_is_noop(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)

        decision = can_reparent(db_session, ItemRef(id=b.id, kind=ItemKind.FOLDER), a.id)

        assert decision.allowed
        assert decision.noop

    def test_trashed_destination(self, db_session, make_folder, make_file):
        a = make_folder("A")
        file = make_file("x.txt")

        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        decision = can_reparent(db_session, ItemRef(id=file.id, kind=ItemKind.FILE), a.id)

        assert not decision.allowed
        assert decision.reason == "Destination folder not found"

    def test_other_owner_destination(self, db_session, make_folder, make_file):
        theirs = make_folder("Theirs", owner_id=OTHER_STUDENT_ID)
        file = make_file("x.txt")

        decision = can_reparent(db_session, ItemRef(id=file.id, kind=ItemKind.FILE), theirs.id)

        assert not decision.allowed


class TestMoveItems:
    """Batch move with per-item results"""

    def test_partial_success(self, db_session, make_folder, make_file):
        """Invalid items are reported and valid ones still move"""
        dest = make_folder("Dest")
        inner = make_folder("Inner", dest)
        movable = make_folder("Movable")
        file = make_file("notes.txt")

        result = move_items(
            db_session,
            [
                ItemRef(id=movable.id, kind=ItemKind.FOLDER),
                ItemRef(id=dest.id, kind=ItemKind.FOLDER),
                ItemRef(id=file.id, kind=ItemKind.FILE),
                ItemRef(id="missing", kind=ItemKind.FILE),
            ],
            inner.id,
        )

        assert result.moved_count == 2
        assert {f.id for f in result.failures} == {dest.id, "missing"}
        db_session.expire_all()
        assert db_session.get(Folder, movable.id).parent_id == inner.id
        assert db_session.get(File, file.id).folder_id == inner.id
        assert db_session.get(Folder, dest.id).parent_id is None

    def test_name_clash_in_destination(self, db_session, make_folder):
        dest = make_folder("Dest")
        make_folder("Same", dest)
        moving = make_folder("same")

        result = move_items(db_session, [ItemRef(id=moving.id, kind=ItemKind.FOLDER)], dest.id)

        assert result.moved_count == 0
        assert "already exists" in result.failures[0].reason

    def test_move_to_root(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)

        result = move_items(db_session, [ItemRef(id=b.id, kind=ItemKind.FOLDER)], None)

        assert result.moved_count == 1
        db_session.expire_all()
        assert db_session.get(Folder, b.id).parent_id is None

    def test_duplicates_and_noops(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)
        ref = ItemRef(id=b.id, kind=ItemKind.FOLDER)

        result = move_items(db_session, [ref, ref], a.id)

        assert result.moved_count == 0
        assert result.unchanged_count == 1
        assert result.failures == []


class TestMoveEndpoint:
    """Test cases for POST /api/v1/items/move"""

    def test_move(self, client, student_headers, make_folder, make_file):
        dest = make_folder("Dest")
        file = make_file("a.pdf")

        response = client.post(
            "/api/v1/items/move",
            json={"items": [file_ref(file)], "destination_folder_id": dest.id},
            headers=student_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["moved_count"] == 1

    def test_move_cycle_reported(self, client, student_headers, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)

        response = client.post(
            "/api/v1/items/move",
            json={"items": [folder_ref(a)], "destination_folder_id": b.id},
            headers=student_headers,
        )

        data = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert data["moved_count"] == 0
        assert data["failures"][0]["id"] == a.id

    def test_cannot_move_foreign_items(self, client, student_headers, make_folder):
        theirs = make_folder("Theirs", owner_id=OTHER_STUDENT_ID)

        response = client.post(
            "/api/v1/items/move",
            json={"items": [folder_ref(theirs)], "destination_folder_id": None},
            headers=student_headers,
        )

        assert response.json()["failures"][0]["reason"] == "Folder not found"

    def test_empty_selection(self, client, student_headers):
        response = client.post(
            "/api/v1/items/move",
            json={"items": [], "destination_folder_id": None},
            headers=student_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_bare_id_rejected(self, client, student_headers):
        """Items must say whether they are folders or files"""
        response = client.post(
            "/api/v1/items/move",
            json={"items": [{"id": "x"}], "destination_folder_id": None},
            headers=student_headers,
        )

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
