"""Tests for the finalizer manager."""

import pytest

from constants import FINALIZER_NAME
from controller.finalizer import ensure_finalizer, has_finalizer, remove_finalizer
from models import PersistenceError


class TestEnsureFinalizer:
    """Tests for ensure_finalizer."""

    def test_adds_missing_finalizer(self, record_store, record):
        assert ensure_finalizer(record_store, record) is True

        assert has_finalizer(record)
        assert record_store.finalizer_writes == [[FINALIZER_NAME]]

    def test_keeps_foreign_finalizers(self, make_record, store_with):
        record = make_record(finalizers=["example.com/other"])
        record_store = store_with(record)

        ensure_finalizer(record_store, record)

        assert record_store.stored(record).finalizers == ["example.com/other", FINALIZER_NAME]

    def test_present_finalizer_is_not_rewritten(self, record_store, record):
        ensure_finalizer(record_store, record)

        assert ensure_finalizer(record_store, record) is False
        assert len(record_store.finalizer_writes) == 1

    def test_write_failure_rolls_back(self, record_store, record, write_failure):
        record_store.finalizer_error = write_failure

        with pytest.raises(PersistenceError) as exc_info:
            ensure_finalizer(record_store, record)

        assert exc_info.value.phase == "finalizer"
        assert record.finalizers == []


class TestRemoveFinalizer:
    """Tests for remove_finalizer."""

    def test_removes_only_own_finalizer(self, make_record, store_with):
        record = make_record(finalizers=["example.com/other", FINALIZER_NAME])
        record_store = store_with(record)

        assert remove_finalizer(record_store, record) is True

        assert record_store.stored(record).finalizers == ["example.com/other"]

    def test_absent_finalizer_is_a_noop(self, record_store, record):
        assert remove_finalizer(record_store, record) is False
        assert record_store.finalizer_writes == []

    def test_write_failure_rolls_back(self, make_record, store_with, write_failure):
        record = make_record(finalizers=[FINALIZER_NAME])
        record_store = store_with(record)
        record_store.finalizer_error = write_failure

        with pytest.raises(PersistenceError):
            remove_finalizer(record_store, record)

        assert record.finalizers == [FINALIZER_NAME]
