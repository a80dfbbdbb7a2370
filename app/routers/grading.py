import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.core.deps import get_db
from app.core.errors import ExternalServiceError, ValidationError
from app.services.grading_client import GradingClient, get_grading_client
from app.services.grading_sessions import attach_task

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/upload")
def upload_for_grading(
    pdf_file: UploadFile = File(...),
    grading_guide_json_str: str = Form(...),
    student_id: Optional[int] = Form(default=None),
    db: Session = Depends(get_db),
    client: GradingClient = Depends(get_grading_client),
):
    try:
        json.loads(grading_guide_json_str)
    except ValueError:
        raise ValidationError(
            "Invalid JSON format in grading_guide_json_str",
            details=[{"loc": ["grading_guide_json_str"], "msg": "must be valid JSON"}],
        )

    result = client.submit_grading(
        pdf_file.file.read(),
        pdf_file.filename or "exam.pdf",
        pdf_file.content_type,
        grading_guide_json_str,
    )

    if student_id is not None:
        task_id = result.get("task_id")
        if not task_id:
            raise ExternalServiceError("Grading server did not return a task id", details=result)
        attach_task(db, student_id, str(task_id))
        logger.info("dispatched grading for student %s as task %s", student_id, task_id)
        result = {**result, "student_id": student_id}

    return result


@router.get("/status/{task_id}")
def grading_status(
    task_id: str,
    client: GradingClient = Depends(get_grading_client),
):
    return client.fetch_task_status(task_id).model_dump(exclude_unset=True)
