"""Tests for catalog and upload tree reconciliation."""

from unittest.mock import patch

import pytest

from photoshelf.errors import StorageError
from photoshelf.services.asset_store import Variant
from photoshelf.services.maintenance import ReconciliationReport, purge_orphans, reconcile


class TestReconcile:
    def test_consistent_library(self, store, catalog, factory):
        record = catalog.create(factory.create_photo_record(filename="cat-1.jpg"))
        factory.place_photo(store, record.filename)

        report = reconcile(store, catalog)

        assert report.consistent is True
        assert report.photo_count == 1
        assert report.original_count == 1

    def test_missing_derivatives(self, store, catalog, factory):
        record = catalog.create(factory.create_photo_record(filename="cat-1.jpg"))
        factory.place_photo(store, record.filename, derivatives=False)
        store.variant_path(record.filename, Variant.THUMBNAIL).write_bytes(b"t")

        report = reconcile(store, catalog)

        assert report.missing_derivatives == {record.id: ["preview"]}
        assert report.consistent is False

    def test_orphans_and_phantoms(self, store, catalog, factory):
        phantom = catalog.create(factory.create_photo_record(filename="gone-1.jpg"))
        factory.place_photo(store, "stray-2.jpg")

        report = reconcile(store, catalog)

        assert report.phantom_records == [phantom.id]
        assert report.orphan_files == ["stray-2.jpg"]
        assert report.missing_derivatives == {}

    def test_to_dict(self):
        report = ReconciliationReport(photo_count=2, original_count=1, orphan_files=["x-1.jpg"])

        data = report.to_dict()

        assert data["orphan_files"] == ["x-1.jpg"]
        assert data["consistent"] is False


class TestPurgeOrphans:
    def test_removes_all_variants(self, store, factory):
        factory.place_photo(store, "stray-1.jpg")
        factory.place_photo(store, "stray-2.jpg", derivatives=False)
        report = ReconciliationReport(orphan_files=["stray-1.jpg", "stray-2.jpg"])

        purged = purge_orphans(store, report)

        assert purged == ["stray-1.jpg", "stray-2.jpg"]
        for filename in purged:
            for variant in Variant:
                assert not store.has_variant(filename, variant)

    def test_nothing_to_purge(self, store):
        assert purge_orphans(store, ReconciliationReport()) == []

    def test_failure_is_raised(self, store, factory):
        factory.place_photo(store, "stray-1.jpg")
        report = ReconciliationReport(orphan_files=["stray-1.jpg"])

        with patch.object(store, "remove_variant", side_effect=StorageError("permission denied")):
            with pytest.raises(StorageError):
                purge_orphans(store, report)
