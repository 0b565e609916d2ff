"""Unit tests for key-value store key naming."""

import pytest

from librarian.store.keys import (
    BATCH_STATUS_NAMESPACE,
    book_list_cache_key,
    pending_batch_key,
    scan_pattern,
    timestamped_key,
    user_email_key,
    user_id_from_key,
)


def test_key_formats():
    """Test that every key family uses the documented layout."""
    assert pending_batch_key("42") == "bulk_books:42"
    assert timestamped_key(BATCH_STATUS_NAMESPACE, "42", 1700000000000) == (
        "bulk_status:42:1700000000000"
    )
    assert book_list_cache_key("42") == "user:42:books"
    assert user_email_key("42") == "user_email:42"
    assert scan_pattern("bulk_status") == "bulk_status:*"


@pytest.mark.parametrize(
    "key",
    ["bulk_books:42", "bulk_status:42:1700000000000", "report_error:42:1"],
)
def test_user_id_from_key(key: str):
    """Test that the user id is the second segment."""
    assert user_id_from_key(key) == "42"


@pytest.mark.parametrize("key", ["bulk_books", "bulk_books:", "bulk_status::1"])
def test_user_id_from_key_malformed(key: str):
    """Test that keys without a user segment are rejected."""
    with pytest.raises(ValueError):
        user_id_from_key(key)
