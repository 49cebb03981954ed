"""
MCP tool handler for get_application: one application's full record.
"""

import logging
from typing import Any, Dict

from pydantic import ValidationError

from db.applications_reader import fetch_application, get_connection
from models.errors import ToolError, create_internal_error, create_not_found_error
from schemas.board import ApplicationRecord, GetApplicationRequest, GetApplicationResponse
from utils.pydantic_error_mapper import map_pydantic_validation_error

logger = logging.getLogger(__name__)


def get_application(args: Dict[str, Any]) -> Dict[str, Any]:
    """
    Read a single application.

    Args:
        args: Dictionary containing:
            - application_id (int)
            - db_path (str, optional)

    Returns:
        {"application": {...}} with the decoded form answers, the
        finalization flag and employee id, or an error dictionary
    """
    try:
        request = GetApplicationRequest.model_validate(args)

        with get_connection(request.db_path) as conn:
            row = fetch_application(conn, request.application_id)

        if row is None:
            raise create_not_found_error(request.application_id)

        return GetApplicationResponse(
            application=ApplicationRecord.model_validate(row)
        ).model_dump(mode="json")

    except ValidationError as e:
        return map_pydantic_validation_error(e).to_dict()

    except ToolError as e:
        return e.to_dict()

    except Exception as e:
        logger.exception("Unexpected error in get_application")
        internal_error = create_internal_error(message=str(e), original_error=e)
        return internal_error.to_dict()
