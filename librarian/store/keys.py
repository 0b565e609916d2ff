"""Key naming for the shared key-value store.

Keys are colon-delimited with the owning user id as the second segment::

    bulk_books:{user_id}                     pending batch (no expiry)
    bulk_status:{user_id}:{epoch_millis}     batch status record
    bulk_error:{user_id}:{epoch_millis}      whole-batch failure
    report_error:{user_id}:{epoch_millis}    report delivery failure
    user:{user_id}:books                     cached book list
    user_email:{user_id}                     cached email address

User ids must not contain ``:``.
"""

import time

PENDING_BATCH_NAMESPACE = "bulk_books"
BATCH_STATUS_NAMESPACE = "bulk_status"
BATCH_ERROR_NAMESPACE = "bulk_error"
REPORT_ERROR_NAMESPACE = "report_error"
USER_EMAIL_NAMESPACE = "user_email"
USER_CACHE_NAMESPACE = "user"


def epoch_millis() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def pending_batch_key(user_id: str) -> str:
    return f"{PENDING_BATCH_NAMESPACE}:{user_id}"


def timestamped_key(namespace: str, user_id: str, millis: int) -> str:
    return f"{namespace}:{user_id}:{millis}"


def user_cache_key(user_id: str, resource: str) -> str:
    return f"{USER_CACHE_NAMESPACE}:{user_id}:{resource}"


def book_list_cache_key(user_id: str) -> str:
    return user_cache_key(user_id, "books")


def user_email_key(user_id: str) -> str:
    return f"{USER_EMAIL_NAMESPACE}:{user_id}"


def scan_pattern(namespace: str) -> str:
    """Glob pattern matching every key in a namespace."""
    return f"{namespace}:*"


def user_id_from_key(key: str) -> str:
    """
    Extract the user id segment from a namespaced key.

    Args:
        key: Key such as ``bulk_status:42:1700000000000``

    Returns:
        The second colon-delimited segment

    Raises:
        ValueError: If the key has no user segment
    """
    parts = key.split(":")
    if len(parts) < 2 or not parts[1]:
        raise ValueError(f"Key has no user segment: {key!r}")
    return parts[1]
