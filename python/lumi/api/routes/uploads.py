"""Image and avatar upload and blob routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lumi.api.deps import get_avatar_storage, get_db, get_image_storage
from lumi.errors import ApiErrorCode
from lumi.responses import error_response
from lumi.schemas.upload import UploadAvatarRequest, UploadImageRequest
from lumi.services import uploads as uploads_service
from lumi.storage import StorageClientBase

router = APIRouter(tags=["uploads"])

BLOB_CACHE_CONTROL = "public, max-age=31536000"


@router.post("/upload-image", status_code=201)
def upload_image(
    body: UploadImageRequest,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_image_storage)],
) -> dict:
    """Store an image and post it to the global room as a message."""
    message, image_url = uploads_service.upload_image(
        db,
        storage,
        username=body.username,
        filename=body.filename,
        file_data=body.file_data,
        message=body.message,
        reply_to_id=body.reply_to_id,
        reply_to_username=body.reply_to_username,
        reply_preview=body.reply_preview,
    )
    return {"message": message.model_dump(mode="json"), "imageUrl": image_url}


@router.get("/images/{username}/{filename}")
def get_image(
    username: str,
    filename: str,
    storage: Annotated[StorageClientBase, Depends(get_image_storage)],
) -> Response:
    blob = uploads_service.get_image(storage, username, filename)
    return Response(
        content=blob.content,
        media_type=blob.content_type,
        headers={"Cache-Control": BLOB_CACHE_CONTROL},
    )


@router.post("/upload-avatar", status_code=201)
def upload_avatar(
    body: UploadAvatarRequest,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_avatar_storage)],
) -> dict:
    """Replace the user's avatar."""
    avatar_url = uploads_service.upload_avatar(
        db, storage, username=body.username, filename=body.filename, file_data=body.file_data
    )
    return {
        "success": True,
        "avatarUrl": avatar_url,
        "message": "Avatar uploaded successfully",
    }


@router.get("/avatars/{key}")
def get_avatar(
    key: str,
    storage: Annotated[StorageClientBase, Depends(get_avatar_storage)],
) -> Response:
    blob = uploads_service.get_avatar_blob(storage, key)
    return Response(
        content=blob.content,
        media_type=blob.content_type,
        headers={"Cache-Control": BLOB_CACHE_CONTROL},
    )


@router.get("/user-avatar")
def get_user_avatar(
    db: Annotated[Session, Depends(get_db)],
    username: Annotated[str | None, Query()] = None,
):
    """The user's avatar reference; 404 with ``hasAvatar: false`` when unset."""
    avatar = uploads_service.get_user_avatar(db, username)
    if avatar is None:
        content = error_response(ApiErrorCode.E_AVATAR_NOT_FOUND, "Avatar not found")
        content["hasAvatar"] = False
        return JSONResponse(status_code=404, content=content)
    return {"hasAvatar": True, "avatar": avatar.model_dump(mode="json", by_alias=True)}


@router.delete("/user-avatar")
def delete_user_avatar(
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_avatar_storage)],
    username: Annotated[str | None, Query()] = None,
) -> dict:
    uploads_service.delete_user_avatar(db, storage, username)
    return {"success": True, "message": "Avatar deleted successfully"}
