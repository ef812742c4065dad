from datetime import timedelta

import pytest
from fastapi import status

from app.core.exceptions import NotFoundError
from app.models.file import File
from app.models.folder import Folder
from app.schemas.item import ItemKind, ItemRef
from app.services.restore import restore_folder_with_contents, restore_item
from app.services.soft_delete import soft_delete_file, soft_delete_folder_with_contents
from app.services.folder_service import list_folder_contents
from app.services.trash import list_trash, restore_selection
from tests.mock_data import STUDENT_ID


def backdate(db_session, item, delta):
    item.deleted_at = item.deleted_at - delta
    db_session.commit()


class TestRestoreFolderWithContents:
    """Restoring a trashed folder and what was trashed with it"""

    def test_inverse_of_soft_delete(self, db_session, make_folder, make_file):
        a = make_folder("A")
        b = make_folder("B", a)
        f = make_file("f.txt", b)
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        result = restore_folder_with_contents(db_session, a.id)

        assert result.count == 3
        db_session.expire_all()
        for model, item_id in ((Folder, a.id), (Folder, b.id), (File, f.id)):
            row = db_session.get(model, item_id)
            assert row.deleted_at is None
            assert row.deleted_by is None
        assert db_session.get(Folder, a.id).parent_id is None
        assert db_session.get(Folder, b.id).parent_id == a.id
        assert db_session.get(File, f.id).folder_id == b.id
        assert db_session.get(Folder, b.id).original_parent_id is None

    def test_earlier_trashed_items_stay_in_trash(self, db_session, make_folder, make_file):
        """Only items trashed with the folder or after it come back"""
        a = make_folder("A")
        early = make_file("early.txt", a)
        soft_delete_file(db_session, early.id, STUDENT_ID)
        db_session.expire_all()
        backdate(db_session, db_session.get(File, early.id), timedelta(hours=1))
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        result = restore_folder_with_contents(db_session, a.id)

        assert early.id not in result.file_ids
        db_session.expire_all()
        assert db_session.get(File, early.id).deleted_at is not None

    def test_parent_in_trash_falls_back_to_root(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        restore_folder_with_contents(db_session, b.id)

        db_session.expire_all()
        restored = db_session.get(Folder, b.id)
        assert restored.deleted_at is None
        assert restored.parent_id is None
        assert db_session.get(Folder, a.id).deleted_at is not None

    def test_not_in_trash(self, db_session, make_folder):
        a = make_folder("A")

        with pytest.raises(NotFoundError):
            restore_folder_with_contents(db_session, a.id)


class TestRestoreItem:
    """Single-item restore"""

    def test_file_returns_to_its_folder(self, db_session, make_folder, make_file):
        a = make_folder("A")
        f = make_file("f.txt", a)
        soft_delete_file(db_session, f.id, STUDENT_ID)

        restore_item(db_session, ItemRef(id=f.id, kind=ItemKind.FILE))

        db_session.expire_all()
        assert db_session.get(File, f.id).folder_id == a.id

    def test_file_falls_back_to_root(self, db_session, make_folder, make_file):
        """A restored item is never hidden under a trashed folder"""
        a = make_folder("A")
        f = make_file("f.txt", a)
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        restore_item(db_session, ItemRef(id=f.id, kind=ItemKind.FILE))

        db_session.expire_all()
        file = db_session.get(File, f.id)
        assert file.deleted_at is None
        assert file.folder_id is None
        assert file.original_folder_id is None

    def test_folder_restores_alone(self, db_session, make_folder):
        a = make_folder("A")
        b = make_folder("B", a)
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        result = restore_item(db_session, ItemRef(id=a.id, kind=ItemKind.FOLDER))

        assert result.folder_ids == [a.id]
        db_session.expire_all()
        assert db_session.get(Folder, b.id).deleted_at is not None

    def test_name_collision_renames(self, db_session, make_file):
        old = make_file("report.pdf")
        soft_delete_file(db_session, old.id, STUDENT_ID)
        make_file("report.pdf")

        restore_item(db_session, ItemRef(id=old.id, kind=ItemKind.FILE))

        db_session.expire_all()
        assert db_session.get(File, old.id).name == "report (1).pdf"

    def test_live_item(self, db_session, make_file):
        f = make_file("f.txt")

        with pytest.raises(NotFoundError):
            restore_item(db_session, ItemRef(id=f.id, kind=ItemKind.FILE))


class TestRestoreSelection:
    def test_partial_success_and_skip(self, db_session, make_folder, make_file):
        """A file brought back by its folder is not restored twice"""
        a = make_folder("A")
        f = make_file("f.txt", a)
        soft_delete_folder_with_contents(db_session, a.id, STUDENT_ID)

        result = restore_selection(
            db_session,
            [
                ItemRef(id=a.id, kind=ItemKind.FOLDER),
                ItemRef(id=f.id, kind=ItemKind.FILE),
                ItemRef(id="missing", kind=ItemKind.FILE),
            ],
        )

        assert result.restored_count == 2
        assert [failure.id for failure in result.failures] == ["missing"]


class TestRestoreEndpoints:
    """Test cases for the /api/v1/trash restore endpoints"""

    def test_restore_folder_endpoint(self, client, student_headers, make_folder, make_file):
        a = make_folder("A")
        make_file("f.txt", a)
        client.delete(f"/api/v1/folders/{a.id}", headers=student_headers)

        response = client.post(f"/api/v1/trash/folders/{a.id}/restore", headers=student_headers)

        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()["file_ids"]) == 1
        assert response.json()["count"] == 2

    def test_restore_single_file_endpoint(self, client, student_headers, make_file):
        f = make_file("f.txt")
        client.delete(f"/api/v1/files/{f.id}", headers=student_headers)

        response = client.post(f"/api/v1/trash/file/{f.id}/restore", headers=student_headers)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["file_ids"] == [f.id]

    def test_restore_selection_endpoint(self, client, student_headers, make_file):
        f = make_file("f.txt")
        client.delete(f"/api/v1/files/{f.id}", headers=student_headers)

        response = client.post(
            "/api/v1/trash/restore",
            json={"items": [{"id": f.id, "kind": "file"}]},
            headers=student_headers,
        )

        assert response.json() == {"restored_count": 1, "failures": []}

    def test_restore_unknown_kind(self, client, student_headers):
        response = client.post("/api/v1/trash/widget/x/restore", headers=student_headers)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_restore_foreign_item(self, client, other_student_headers, make_file, db_session):
        f = make_file("f.txt")
        soft_delete_file(db_session, f.id, STUDENT_ID)

        response = client.post(f"/api/v1/trash/file/{f.id}/restore", headers=other_student_headers)

        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestReportsScenario:
    """Reports / 2024 / q1.pdf through trash and back"""

    def test_round_trip(self, db_session, make_folder, make_file):
        reports = make_folder("Reports")
        year = make_folder("2024", reports)
        q1 = make_file("q1.pdf", year)

        soft_delete_folder_with_contents(db_session, reports.id, STUDENT_ID)

        trashed = {item.name: item for item in list_trash(db_session, STUDENT_ID)}
        assert set(trashed) == {"Reports", "2024", "q1.pdf"}
        assert trashed["2024"].original_location_id == reports.id
        assert trashed["q1.pdf"].original_location_id == year.id
        assert list_folder_contents(db_session, STUDENT_ID) == ([], [])

        restore_folder_with_contents(db_session, reports.id)

        folders, _ = list_folder_contents(db_session, STUDENT_ID)
        assert [f.name for f in folders] == ["Reports"]
        sub_folders, _ = list_folder_contents(db_session, STUDENT_ID, reports.id)
        assert [f.name for f in sub_folders] == ["2024"]
        _, files = list_folder_contents(db_session, STUDENT_ID, year.id)
        assert [f.name for f in files] == ["q1.pdf"]
        assert list_trash(db_session, STUDENT_ID) == []

    def test_file_follows_restored_folder(self, db_session, make_folder, make_file):
        """Restoring Y alone attaches it to P once P is live again"""
        q = make_folder("Q")
        p = make_folder("P", q)
        y = make_file("y.txt", p)
        soft_delete_folder_with_contents(db_session, p.id, STUDENT_ID)
        soft_delete_folder_with_contents(db_session, q.id, STUDENT_ID)

        restore_item(db_session, ItemRef(id=p.id, kind=ItemKind.FOLDER))
        restore_item(db_session, ItemRef(id=y.id, kind=ItemKind.FILE))

        db_session.expire_all()
        assert db_session.get(Folder, p.id).parent_id is None
        assert db_session.get(File, y.id).folder_id == p.id
