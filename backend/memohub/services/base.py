"""
Shared service plumbing: store-error translation.

Each service method follows one rule: application errors (MemoHubError
subclasses) propagate untouched, SQLAlchemy failures are logged with their
detail and re-raised as a generic DatabaseError. `db_errors` applies that
rule to a coroutine method.
"""

import functools
import logging

from sqlalchemy.exc import SQLAlchemyError

from memohub.exceptions import DatabaseError, MemoHubError

logger = logging.getLogger(__name__)


def db_errors(operation: str):
    """Decorator: wrap unexpected store failures of `operation` in DatabaseError."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except MemoHubError:
                raise
            except SQLAlchemyError as e:
                logger.error("Database error during %s: %s", operation, e, exc_info=True)
                raise DatabaseError(
                    message=f"Could not {operation}. Please try again.",
                    context={"operation": operation, "error_type": type(e).__name__},
                ) from e

        return wrapper

    return decorator
