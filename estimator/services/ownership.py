"""Owner scoping helpers shared by the catalog and estimation services."""
from typing import Any, Optional

from estimator.exceptions import NotFoundError, PermissionDeniedError


def require_identity(user_id: Optional[str]) -> str:
    """Refuse the operation when there is no authenticated owner."""
    if user_id is None or not str(user_id).strip():
        raise PermissionDeniedError('Sign in to access your catalogs and estimations.')
    return str(user_id)


def ensure_owner(record: Any, owner_field: str, user_id: str, label: str) -> None:
    """Raise PermissionDeniedError when `record` belongs to another user."""
    if getattr(record, owner_field) != user_id:
        raise PermissionDeniedError(f'{label} belongs to another user.')


def parse_record_id(value: Any, label: str) -> int:
    """
    Turn an opaque identifier from the wire into a primary key.

    Identifiers that cannot be a key of ours cannot exist either.
    """
    try:
        record_id = int(str(value).strip())
    except (TypeError, ValueError):
        raise NotFoundError(f'{label} {value} not found.')
    if record_id <= 0:
        raise NotFoundError(f'{label} {value} not found.')
    return record_id
