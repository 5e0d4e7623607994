import asyncio
import logging
from functools import partial

from google.api_core import exceptions as gcp_exceptions

from app.core.errors import ConflictError, InternalError, NotFoundError

logger = logging.getLogger("airrands")


async def firestore_run(fn, *args, **kwargs):
    """
    Run blocking Firestore SDK calls safely in async code.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        partial(fn, *args, **kwargs)
    )


async def commit_batch(batch, label: str):
    """
    Commit a write batch; all writes land or none do.
    Store errors are surfaced as ServiceErrors, never swallowed.
    """
    try:
        return await firestore_run(batch.commit)
    except gcp_exceptions.AlreadyExists as e:
        logger.info(f"{label}: document already exists: {e}")
        raise ConflictError("Record already exists")
    except gcp_exceptions.FailedPrecondition as e:
        logger.warning(f"{label}: precondition failed, record changed concurrently: {e}")
        raise ConflictError("Record was modified by someone else. Refresh and retry.")
    except gcp_exceptions.NotFound as e:
        logger.warning(f"{label}: document vanished before commit: {e}")
        raise NotFoundError("Record not found")
    except gcp_exceptions.GoogleAPICallError as e:
        logger.error(f"{label}: batch commit failed: {e}", exc_info=True)
        raise InternalError(f"Failed to save {label}")


async def count_documents(query) -> int:
    """Server-side aggregation count; no documents are transferred."""
    result = await firestore_run(query.count().get)
    return int(result[0][0].value)
