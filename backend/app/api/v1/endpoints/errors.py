"""
errors.py - Client error reporting endpoint.

ENDPOINT: POST /errors
PURPOSE: Let a script report the errors it sees so that identical errors
repeated within the loop window block its session.

RESPONSE CODES:
- 201 Created: Report recorded (loop_detected tells whether it tripped the gate)
- 400 Bad Request: Missing error message or unparsable timestamp
- 500 Internal Server Error: Storage failure
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_guardrail
from app.core.clock import parse_timestamp
from app.schemas.guard import ErrorReport, ErrorReportResponse
from app.services.guardrail import GuardrailService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=ErrorReportResponse, status_code=status.HTTP_201_CREATED)
def report_error(
    report: ErrorReport,
    request: Request,
    guardrail: GuardrailService = Depends(get_guardrail),
):
    """
    Record an error report and run client-error loop detection.

    The detection window is anchored at the report's own timestamp, so
    backfilled reports are judged against each other rather than against
    the time they arrive.
    """
    if not report.error_message:
        raise HTTPException(status_code=400, detail="Missing error_message or error field.")

    timestamp = None
    if report.timestamp:
        try:
            timestamp = parse_timestamp(report.timestamp)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Invalid timestamp: {report.timestamp}")

    session_id = report.session_id or request.app.state.settings.DEFAULT_SESSION_ID

    try:
        result = guardrail.report_error(session_id, report.error_message, timestamp)
    except SQLAlchemyError:
        guardrail.db.rollback()
        logger.exception("Error report storage failure for session %s", session_id)
        raise HTTPException(status_code=500, detail="Failed to process error report.")

    return ErrorReportResponse(
        session_id=result.session_id,
        loop_detected=result.loop_detected,
        session_status=result.session_status,
    )
