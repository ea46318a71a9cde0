"""
Video metadata and data endpoints.

Flow for a client:
1. POST /video with metadata -> record with id and data_url, state NOT_READY
2. POST /video/{id}/data with a multipart "data" field -> {"state": "READY"}
3. GET /video/{id}/data -> the stored bytes, streamed

Blocking storage calls run off the event loop; downloads are streamed
chunk by chunk straight from the blob store.
"""

import asyncio
import logging
from typing import Annotated, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import BaseModel, Field

from ...core.videos.blobs import BlobNotFoundError, StorageError, UploadTooLargeError
from ...core.videos.index import VideoNotFoundError
from ...core.videos.models import VideoRecord, VideoState
from ..dependencies import DataBaseUrlDep, VideoServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_MEDIA_TYPE = "application/octet-stream"


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VideoCreateRequest(BaseModel):
    """Metadata supplied by the client. Any id or data_url is ignored."""
    title: str = Field(default="", max_length=500, description="Video title")
    duration: int = Field(default=0, ge=0, description="Duration in seconds")
    location: Optional[str] = Field(None, description="Where the video was recorded")
    subject: Optional[str] = Field(None, description="What the video is about")
    content_type: Optional[str] = Field(None, description="MIME type of the video data")

    def to_record(self) -> VideoRecord:
        return VideoRecord(
            title=self.title,
            duration=self.duration,
            location=self.location,
            subject=self.subject,
            content_type=self.content_type,
        )


class VideoResponse(BaseModel):
    """A registered video."""
    id: int = Field(description="Server-assigned identifier")
    title: str
    duration: int
    location: Optional[str] = None
    subject: Optional[str] = None
    content_type: Optional[str] = None
    data_url: str = Field(description="Where to upload and download the video data")
    state: VideoState = Field(description="READY once data has been uploaded")

    @classmethod
    def from_record(cls, record: VideoRecord) -> "VideoResponse":
        return cls(
            id=record.id,
            title=record.title,
            duration=record.duration,
            location=record.location,
            subject=record.subject,
            content_type=record.content_type,
            data_url=record.data_url,
            state=record.state,
        )


class VideoStatusResponse(BaseModel):
    """Outcome of a data upload."""
    state: VideoState


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _video_not_found(video_id: int) -> HTTPException:
    logger.info("Video not found", extra={"video_id": video_id})
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Video not found",
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[VideoResponse],
    summary="List videos",
)
async def list_videos(service: VideoServiceDep) -> list[VideoResponse]:
    return [VideoResponse.from_record(record) for record in service.list_metadata()]


@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_200_OK,
    summary="Register a video",
    description="Store video metadata and get back its id and data URL",
)
async def add_video(
    request: VideoCreateRequest,
    service: VideoServiceDep,
    base_url: DataBaseUrlDep,
) -> VideoResponse:
    record = service.register_metadata(request.to_record(), base_url)
    return VideoResponse.from_record(record)


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get video metadata",
)
async def get_video(video_id: int, service: VideoServiceDep) -> VideoResponse:
    try:
        record = service.get_metadata(video_id)
    except VideoNotFoundError:
        raise _video_not_found(video_id)
    return VideoResponse.from_record(record)


@router.post(
    "/{video_id}/data",
    response_model=VideoStatusResponse,
    status_code=status.HTTP_200_OK,
    summary="Upload video data",
    description="Upload the binary data for a registered video as multipart field 'data'",
)
async def set_video_data(
    video_id: int,
    data: Annotated[UploadFile, File(description="Encoded video")],
    service: VideoServiceDep,
) -> VideoStatusResponse:
    """
    Store the uploaded bytes for a video.

    Replaces any earlier upload. The record only becomes READY once the
    data has been written completely.
    """
    logger.info(
        "Video data upload started",
        extra={
            "video_id": video_id,
            "upload_filename": data.filename,
            "content_type": data.content_type,
        }
    )

    try:
        video_status = await asyncio.to_thread(service.upload_data, video_id, data.file)
    except VideoNotFoundError:
        raise _video_not_found(video_id)
    except UploadTooLargeError as e:
        raise HTTPException(
            status_code=413,
            detail=str(e),
        )
    except StorageError as e:
        logger.error(
            "Failed to store video data",
            extra={"video_id": video_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to store video data",
        )
    finally:
        await data.close()

    return VideoStatusResponse(state=video_status.state)


@router.get(
    "/{video_id}/data",
    summary="Download video data",
    description="Stream the binary data previously uploaded for a video",
    response_class=StreamingResponse,
    responses={404: {"description": "Unknown video or no data uploaded yet"}},
)
async def get_video_data(video_id: int, service: VideoServiceDep) -> StreamingResponse:
    try:
        record = service.get_metadata(video_id)
        chunks = await asyncio.to_thread(service.stream_data, video_id)
    except VideoNotFoundError:
        raise _video_not_found(video_id)
    except BlobNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Video data not uploaded",
        )
    except StorageError as e:
        logger.error(
            "Failed to open video data",
            extra={"video_id": video_id, "error": str(e)}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to read video data",
        )

    # releases the file handle or S3 body even if streaming never starts
    return StreamingResponse(
        chunks,
        media_type=record.content_type or DEFAULT_MEDIA_TYPE,
        background=BackgroundTask(chunks.close),
    )
