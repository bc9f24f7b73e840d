import json
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse

from app.core.config import settings
from app.core.deps import get_status_service
from app.core.logging import logger
from app.services.exports.exporter import XLSX_MEDIA_TYPE
from app.services.jobs.broadcast import channel_name
from app.services.jobs.status import TERMINAL_STATES, JobState, JobStatusService

router = APIRouter()

# the socket closes once one of these is sent; not_found also covers expired records
CLOSING_STATES = {s.value for s in TERMINAL_STATES} | {JobState.not_found.value, JobState.error.value}


@router.get("/{job_id}/status")
def get_job_status(job_id: str, tracker: JobStatusService = Depends(get_status_service)):
    return tracker.get_status(job_id).model_dump(mode="json")


@router.get("/{job_id}/download")
def download_job_file(job_id: str, tracker: JobStatusService = Depends(get_status_service)):
    st = tracker.get_status(job_id)
    if st.status == JobState.not_found:
        raise HTTPException(status_code=404, detail="Job not found")
    if st.status != JobState.completed:
        raise HTTPException(status_code=409, detail=f"Job is {st.status.value}")
    path = getattr(st, "file_path", None)
    if not path or not Path(path).exists():
        raise HTTPException(status_code=404, detail="Job has no downloadable file")
    return FileResponse(path, media_type=XLSX_MEDIA_TYPE, filename=Path(path).name)


@router.websocket("/{job_id}/ws")
async def job_status_ws(websocket: WebSocket, job_id: str):
    """Snapshot first, then every change until the job is over.

    The channel is subscribed before the snapshot is read. The cache is also
    re-read every ``JOB_STATUS_POLL_SECONDS`` in case a publish was lost.
    """
    tracker: JobStatusService = get_status_service()
    await websocket.accept()
    try:
        if tracker.broadcaster is None:
            await websocket.send_json(tracker.get_status(job_id).model_dump(mode="json"))
            await websocket.close()
            return

        async with tracker.broadcaster.subscribe(channel_name(job_id)) as sub:
            current = tracker.get_status(job_id).model_dump(mode="json")
            await websocket.send_json(current)
            while current["status"] not in CLOSING_STATES:
                message = await sub.get_message(timeout=settings.JOB_STATUS_POLL_SECONDS)
                if message is not None:
                    current = json.loads(message)
                    await websocket.send_json(current)
                    continue
                polled = tracker.get_status(job_id).model_dump(mode="json")
                if polled["status"] != current["status"]:
                    current = polled
                    await websocket.send_json(current)
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("job_ws_disconnected", job_id=job_id)
