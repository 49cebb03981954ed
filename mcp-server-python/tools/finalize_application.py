"""
MCP tool handler for finalize_application (the Finalization Gate).

Converts a FINALIZED application into an employee record exactly once:

1. Claim the application (compare-and-set of ``finalize_claim``) and commit.
2. Create the employee downstream under the caller's deadline. Creation is
   keyed by application id, so a retry after a partial failure finds the
   same employee.
3. Set ``fully_finalized`` and ``employee_id`` while the claim is still ours.

A failed or timed-out downstream call releases the claim and is retryable.
"""

import concurrent.futures as cf
import logging
import uuid
from typing import Any, Dict, Optional

from pydantic import ValidationError

from config import get_config
from db.applications_writer import ApplicationsWriter
from db.employee_directory import EmployeeDirectory
from models.errors import (
    DownstreamFailure,
    FinalizationInProgressError,
    IllegalTransitionError,
    ToolError,
    create_internal_error,
    create_not_found_error,
    create_timeout_error,
)
from models.pipeline_state import PipelineState
from schemas.finalize import FinalizeApplicationRequest, FinalizeApplicationResponse
from tools.transition_application import resolve_timeout
from utils.pydantic_error_mapper import map_pydantic_validation_error
from utils.validation import get_current_utc_timestamp

logger = logging.getLogger(__name__)


def build_response(application_id: int, employee_id: str, created: bool) -> Dict[str, Any]:
    return FinalizeApplicationResponse(
        application_id=application_id, employee_id=employee_id, created=created
    ).model_dump()


def claim_application(
    db_path: Optional[str], application_id: int, claim_token: str, timeout: float
) -> Dict[str, Any]:
    """
    Run the precondition checks and take the finalization claim.

    Returns:
        The application row. When it is already fully finalized, no claim is
        taken and the caller returns the stored employee.

    Raises:
        ToolError: NOT_FOUND, ILLEGAL_TRANSITION (state is not FINALIZED) or
            FINALIZATION_IN_PROGRESS (another request holds a live claim)
    """
    with ApplicationsWriter(db_path, timeout=timeout) as writer:
        application = writer.fetch_application(application_id)
        if application is None:
            raise create_not_found_error(application_id)

        if application["fully_finalized"]:
            return application

        if application["state"] != PipelineState.FINALIZED.value:
            raise IllegalTransitionError(
                f"Application {application_id} is in state '{application['state']}'; "
                "only FINALIZED applications can be converted into employees"
            )

        claimed = writer.claim_finalization(
            application_id,
            claim_token,
            get_current_utc_timestamp(),
            get_config().finalize_claim_ttl_seconds,
        )
        if not claimed:
            logger.warning("Finalization of application %s already in progress", application_id)
            raise FinalizationInProgressError(
                f"Finalization of application {application_id} is already in progress; retry later"
            )

        writer.commit()
        return application


def release_claim(
    db_path: Optional[str], application_id: int, claim_token: str, timeout: float
) -> None:
    """Release our claim. Failures are logged; the claim then expires by TTL."""
    try:
        with ApplicationsWriter(db_path, timeout=timeout) as writer:
            writer.release_finalization_claim(application_id, claim_token)
            writer.commit()
    except ToolError as e:
        logger.warning(
            "Could not release finalization claim on application %s: %s", application_id, e.message
        )


def create_employee_with_deadline(
    directory: EmployeeDirectory, application: Dict[str, Any], actor_id: str, timeout: float
) -> Dict[str, Any]:
    """
    Call the employee directory, giving up after ``timeout`` seconds.

    The worker thread is not joined on timeout; a late completion is harmless
    because creation is idempotent per application.

    Raises:
        concurrent.futures.TimeoutError: If the deadline passes
    """
    executor = cf.ThreadPoolExecutor(max_workers=1)
    try:
        future = executor.submit(
            directory.create_employee,
            application_id=application["id"],
            candidate_id=application["candidate_id"],
            convocatoria_id=application["convocatoria_id"],
            created_by=actor_id,
        )
        return future.result(timeout=timeout)
    finally:
        executor.shutdown(wait=False)


def finalize_application(
    args: Dict[str, Any], employee_directory: Optional[EmployeeDirectory] = None
) -> Dict[str, Any]:
    """
    Convert a FINALIZED application into an employee, at most once.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - actor_id (str)
            - timeout_seconds (float, optional): Lock wait and downstream deadline
            - db_path (str, optional)
        employee_directory: Downstream override (defaults to the SQLite directory
            in the same database)

    Returns:
        Dictionary with structure:
        {
            "application_id": int,
            "employee_id": str,
            "created": bool          # False when already finalized earlier
        }

        On error, returns:
        {
            "error": {
                "code": str,         # NOT_FOUND, ILLEGAL_TRANSITION, DOWNSTREAM_FAILURE, TIMEOUT, ...
                "message": str,
                "retryable": bool
            }
        }
    """
    try:
        request = FinalizeApplicationRequest.model_validate(args)
        timeout = resolve_timeout(request.timeout_seconds)
        application_id = request.application_id
        directory = employee_directory or EmployeeDirectory(request.db_path, timeout=timeout)

        claim_token = uuid.uuid4().hex
        application = claim_application(request.db_path, application_id, claim_token, timeout)

        if application["fully_finalized"]:
            logger.info("Application %s already finalized; returning stored employee", application_id)
            return build_response(application_id, application["employee_id"], created=False)

        try:
            employee = create_employee_with_deadline(
                directory, application, request.actor_id, timeout
            )
        except cf.TimeoutError as e:
            release_claim(request.db_path, application_id, claim_token, timeout)
            raise create_timeout_error(
                f"Employee creation for application {application_id} exceeded {timeout}s",
                original_error=e,
            ) from e
        except Exception as e:
            release_claim(request.db_path, application_id, claim_token, timeout)
            logger.error("Employee creation failed for application %s: %s", application_id, e)
            raise DownstreamFailure(
                f"Employee creation failed for application {application_id}; retry is safe",
                original_error=e,
            ) from e

        with ApplicationsWriter(request.db_path, timeout=timeout) as writer:
            marked = writer.mark_fully_finalized(
                application_id, claim_token, employee["id"], get_current_utc_timestamp()
            )
            if not marked:
                # Our claim expired and another request finished first
                current = writer.fetch_application(application_id)
                if current is not None and current["fully_finalized"]:
                    return build_response(application_id, current["employee_id"], created=False)
                raise FinalizationInProgressError(
                    f"Finalization claim on application {application_id} was lost; retry later"
                )
            writer.commit()

        logger.info(
            "Application %s finalized as employee %s by %s",
            application_id,
            employee["id"],
            request.actor_id,
        )
        return build_response(application_id, employee["id"], created=True)

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in finalize_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
