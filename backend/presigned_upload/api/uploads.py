"""
Upload endpoints for presigned URL generation.

Implements the direct-to-storage upload flow:
1. POST /prepare-upload - Get presigned URL and key
2. (client PUTs the file to storage)
3. POST /upload-confirm - Backend re-checks storage, then records the key
4. GET /get-uploaded-images - Public CDN URLs of recorded uploads

Security:
- Presigned URLs expire after 5 minutes (configurable)
- The URL is bound to one key and one content type
- Confirmation is checked against storage, never taken on the client's word
"""
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from presigned_upload.dependencies import get_upload_service
from presigned_upload.errors import (
    AuthorizationFailedError,
    ObjectNotFoundError,
    PersistenceFailedError,
    UnsupportedFileTypeError,
    UploadValidationError,
    VerificationIndeterminateError,
)
from presigned_upload.schemas.upload import (
    PrepareUploadRequest,
    PrepareUploadResponse,
    UploadConfirmRequest,
    UploadConfirmResponse,
    UploadedImagesResponse,
)
from presigned_upload.services.upload_service import UploadService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/prepare-upload", response_model=PrepareUploadResponse)
async def prepare_upload(
    request: PrepareUploadRequest,
    service: UploadService = Depends(get_upload_service)
):
    """
    Generate a presigned URL for direct upload to storage.

    Client then:
    1. PUTs the file to presigned_url with the matching Content-Type
    2. Calls /upload-confirm with key when done
    """
    try:
        authorization = await service.begin(request.file_extension, request.content_type)
    except UnsupportedFileTypeError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "file extension is not supported for upload"}
        )
    except UploadValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(e)}
        )
    except AuthorizationFailedError:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Failed to generate pre-signed URL"}
        )

    return PrepareUploadResponse(
        presigned_url=authorization.url,
        key=authorization.key,
        expires_at=authorization.expires_at
    )


@router.post(
    "/upload-confirm",
    response_model=UploadConfirmResponse,
    responses={404: {"description": "Object not found in storage"}}
)
async def upload_confirm(
    request: UploadConfirmRequest,
    service: UploadService = Depends(get_upload_service)
):
    """
    Confirm that an upload has completed.

    The object is looked up in storage; only then is it recorded.
    If the ledger write fails the response is still a success with
    ledgered=false, since the file is genuinely stored.
    """
    try:
        result = await service.confirm(request.key)
    except ObjectNotFoundError:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"success": False, "error": "not found"}
        )
    except UploadValidationError as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": str(e)}
        )
    except VerificationIndeterminateError:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"success": False, "error": "storage verification unavailable, retry later"}
        )

    upload_status = "file uploaded successfully"
    if not result.ledgered:
        upload_status = "file uploaded successfully, record pending"

    return UploadConfirmResponse(
        success=True,
        url=result.url,
        status=upload_status,
        ledgered=result.ledgered
    )


@router.get("/get-uploaded-images", response_model=UploadedImagesResponse)
async def get_uploaded_images(service: UploadService = Depends(get_upload_service)):
    """Return the public CDN URL of every recorded upload."""
    try:
        images = await service.list_image_urls()
    except PersistenceFailedError as e:
        logger.error(f"Failed to list uploaded images: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": "failed to get images"}
        )

    return UploadedImagesResponse(success=True, images=images)
