"""Tests for POI administration."""
import pytest

from eplq.client.admin import PoiAdmin, build_poi
from eplq.shared.errors import InvalidPOIError, StorageError
from eplq.shared.protocol import Identity, Region

from conftest import LONDON


BIG_BEN = {"name": "Big Ben", "latitude": 51.5007, "longitude": -0.1246, "description": "Clock"}


class TestBuildPoi:
    """Test POI validation from loose fields."""

    def test_coerces_numeric_strings(self):
        poi = build_poi({"name": "x", "latitude": "51.5", "longitude": "-0.12"})
        assert (poi.latitude, poi.longitude) == (51.5, -0.12)
        assert poi.description == ""

    @pytest.mark.parametrize("fields,field", [
        ({"latitude": 1, "longitude": 1}, "name"),
        ({"name": "   ", "latitude": 1, "longitude": 1}, "name"),
        ({"name": "x", "latitude": 91, "longitude": 1}, "latitude"),
        ({"name": "x", "latitude": "north", "longitude": 1}, "latitude"),
        ({"name": "x", "latitude": 1, "longitude": -180.5}, "longitude"),
        ({"name": "x", "latitude": 1}, "longitude"),
    ])
    def test_invalid_fields(self, fields, field):
        with pytest.raises(InvalidPOIError) as excinfo:
            build_poi(fields)
        assert excinfo.value.field == field


class TestUpload:
    """Test single and bulk upload."""

    def test_upload_stores_ciphertext_and_region(self, admin, store, owner):
        result = admin.upload_poi(BIG_BEN, owner)

        assert result.success
        record = store.get("encrypted_pois", result.data)
        assert record.approximate_region == Region(51.5, -0.1)
        assert record.uploaded_by == owner.user_id
        assert record.uploaded_by_email == owner.email
        assert record.uploaded_at is not None
        assert "Big Ben" not in record.encrypted_data
        assert "51.5007" not in record.encrypted_data

    def test_uploaded_record_decrypts(self, admin, store, codec, owner):
        record_id = admin.upload_poi(BIG_BEN, owner).data

        poi = codec.decrypt_poi(store.get("encrypted_pois", record_id).encrypted_data)

        assert poi.name == "Big Ben"
        assert poi.latitude == 51.5007
        assert poi.timestamp is not None

    def test_invalid_poi_is_not_stored(self, admin, store, owner):
        result = admin.upload_poi({"name": "x", "latitude": 95, "longitude": 0}, owner)

        assert not result.success
        assert "latitude" in result.error
        assert result.message.startswith("Failed to upload POI")
        assert store.count("encrypted_pois") == 0

    def test_upload_many(self, admin, store, owner):
        rows = [
            BIG_BEN,
            {"name": "", "latitude": 1, "longitude": 1},
            {"name": "Eye", "latitude": "51.5033", "longitude": "-0.1196"},
        ]

        result = admin.upload_many(rows, owner)

        assert result.success
        assert result.data["success"] == 2
        assert result.data["failed"] == 1
        assert result.data["errors"][0]["row"] == 1
        assert len(result.data["ids"]) == 2
        assert result.message == "Uploaded 2 POIs successfully. 1 failed."
        assert store.count("encrypted_pois") == 2

    def test_unrepresentable_coordinate_is_a_row_failure(self, admin, store, owner):
        rows = [{"name": "big", "latitude": 10**400, "longitude": 0}, BIG_BEN]

        result = admin.upload_many(rows, owner)

        assert result.data["success"] == 1
        assert result.data["failed"] == 1
        assert "latitude" in result.data["errors"][0]["error"]
        assert store.count("encrypted_pois") == 1

    def test_upload_storage_failure(self, codec, owner):
        class BrokenStore:
            def insert(self, collection, record):
                raise StorageError("quota exceeded")

        admin = PoiAdmin(codec, BrokenStore())
        result = admin.upload_poi(BIG_BEN, owner)

        assert not result.success
        assert result.error == "quota exceeded"


class TestUpdateDelete:
    """Test record replacement and removal."""

    def test_update_replaces_blob_and_region(self, admin, store, engine, owner):
        record_id = admin.upload_poi(BIG_BEN, owner).data
        before = store.get("encrypted_pois", record_id)

        result = admin.update_poi(
            record_id,
            {"name": "Eiffel Tower", "latitude": 48.8584, "longitude": 2.2945},
            owner,
        )

        assert result.success
        after = store.get("encrypted_pois", record_id)
        assert after.encrypted_data != before.encrypted_data
        assert after.approximate_region == Region(48.9, 2.3)
        assert after.updated_at is not None
        assert after.uploaded_at == before.uploaded_at

        assert engine.search(*LONDON, radius_km=10).results == []
        assert engine.search(48.8566, 2.3522, radius_km=10).results[0].name == "Eiffel Tower"

    def test_update_validates_first(self, admin, store, owner):
        record_id = admin.upload_poi(BIG_BEN, owner).data
        before = store.get("encrypted_pois", record_id)

        result = admin.update_poi(record_id, {"name": "x", "latitude": 0, "longitude": 999}, owner)

        assert not result.success
        assert store.get("encrypted_pois", record_id) == before

    def test_update_missing_record(self, admin, owner):
        result = admin.update_poi("missing", BIG_BEN, owner)

        assert not result.success
        assert "not found" in result.error

    def test_delete(self, admin, store, owner, audit_sink):
        record_id = admin.upload_poi(BIG_BEN, owner).data

        result = admin.delete_poi(record_id, owner)

        assert result.success
        assert store.get("encrypted_pois", record_id) is None
        assert audit_sink.events[-1].action == "POI deleted successfully"

    def test_delete_missing_record(self, admin, owner):
        assert not admin.delete_poi("missing", owner).success


class TestListUploads:
    """Test listing the caller's uploads."""

    def test_only_own_records_newest_first(self, admin, owner, monkeypatch):
        stamps = iter(f"2024-01-0{day}T00:00:00+00:00" for day in range(1, 10))
        monkeypatch.setattr("eplq.client.admin._now", lambda: next(stamps))
        other = Identity("u-other", "other@example.com")
        first = admin.upload_poi(BIG_BEN, owner).data
        admin.upload_poi({"name": "Theirs", "latitude": 1, "longitude": 1}, other)
        second = admin.upload_poi({"name": "Eye", "latitude": 51.5, "longitude": -0.12}, owner).data

        result = admin.list_uploads(owner)

        assert result.success
        assert [r.id for r in result.data] == [second, first]
