"""DB utilities: IntegrityError -> ConflictError."""
from functools import wraps

from sqlalchemy.exc import IntegrityError

from contractscope.db.exceptions import ConflictError


def wrap_integrity_error(fn):
    """Decorator that wraps IntegrityError in ConflictError."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except IntegrityError as e:
            raise ConflictError(f"Constraint violation: {e.orig}") from e
    return wrapper
