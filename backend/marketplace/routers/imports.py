import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from bookcore.imports import IMPORT_TOTAL_STEPS, SUPPORTED_TYPES, decode_base64_upload, import_file
from marketplace.auth import require_writer
from marketplace.db.supabase import first_row, get_supabase_client
from marketplace.models.admin import ImportRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/imports", tags=["imports"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _update_job(supabase, job_id, **fields) -> None:
    if job_id is None:
        return
    fields["updated_at"] = _now()
    supabase.table("import_jobs").update(fields).eq("id", job_id).execute()


def _fail_job(supabase, job_id, message: str) -> None:
    try:
        _update_job(supabase, job_id, status="failed", error_message=message, completed_at=_now())
    except Exception as e:
        logger.warning(f"Could not mark import job {job_id} failed: {e}")


@router.post("")
async def import_manuscript(
    body: ImportRequest,
    profile: dict = Depends(require_writer),
    supabase=Depends(get_supabase_client),
):
    """
    Import an uploaded manuscript (base64 encoded) into book content.

    Progress is tracked in an import_jobs row which ends up either
    ``completed`` with the result or ``failed`` with the error message.
    """
    file_type = body.file_type.lower().lstrip(".")
    if file_type not in SUPPORTED_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported file type: {body.file_type}")

    job = supabase.table("import_jobs").insert({
        "user_id": profile["id"],
        "import_type": file_type,
        "status": "processing",
        "progress_percentage": 0,
        "completed_steps": 0,
        "total_steps": IMPORT_TOTAL_STEPS,
        "current_step": f"Processing {file_type.upper()} file...",
        "import_data": {"file_name": body.file_name},
        "created_at": _now(),
    }).execute()
    job_id = job.data[0]["id"] if job.data else None

    try:
        data = decode_base64_upload(body.file_data)
        _update_job(
            supabase, job_id,
            progress_percentage=20, completed_steps=1,
            current_step=f"Extracting {file_type.upper()} content...",
        )
        result = import_file(file_type, body.file_name, data)
    except ValueError as e:
        logger.warning(f"Import of {body.file_name} failed: {e}")
        _fail_job(supabase, job_id, str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error importing {body.file_name}: {e}")
        _fail_job(supabase, job_id, str(e))
        raise HTTPException(status_code=500, detail="Import failed")

    _update_job(
        supabase,
        job_id,
        status="completed",
        progress_percentage=100,
        completed_steps=IMPORT_TOTAL_STEPS,
        current_step=f"{file_type.upper()} processing completed",
        completed_at=_now(),
        import_data={
            "file_name": body.file_name,
            "title": result.title,
            "word_count": result.word_count,
            "chapters": len(result.chapters),
        },
    )
    logger.info(f"Imported {body.file_name}: {result.word_count} words, {len(result.chapters)} chapters")
    return {"job_id": job_id, **result.to_dict()}


@router.get("/{job_id}")
async def get_import_job(job_id: str, profile: dict = Depends(require_writer), supabase=Depends(get_supabase_client)):
    job = first_row(
        supabase.table("import_jobs").select("*").eq("id", job_id).eq("user_id", profile["id"]).limit(1).execute()
    )
    if not job:
        raise HTTPException(status_code=404, detail="Import job not found")
    return job
