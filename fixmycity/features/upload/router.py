from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from fixmycity.config.settings import Settings, get_settings
from fixmycity.features.auth.router import get_current_identity
from fixmycity.features.auth.service import Identity
from fixmycity.utils.errors import ValidationFailed
from fixmycity.utils.imagekit import ImageKitClient

router = APIRouter(prefix="/upload", tags=["Upload"])


def get_image_store(request: Request) -> ImageKitClient:
    return request.app.state.image_store


@router.post("")
def upload_image(
    file: UploadFile = File(...),
    folder: str = Form("complaints"),
    settings: Settings = Depends(get_settings),
    image_store: ImageKitClient = Depends(get_image_store),
    identity: Identity = Depends(get_current_identity),
):
    if not (file.content_type or "").startswith("image/"):
        raise ValidationFailed("Only image files are allowed")

    content = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(content) > settings.MAX_UPLOAD_BYTES:
        limit_mb = settings.MAX_UPLOAD_BYTES // (1024 * 1024)
        raise ValidationFailed(f"File size must be less than {limit_mb}MB")

    result = image_store.upload(content, file.filename or "upload", folder=folder or "complaints")
    return {"success": True, "url": result["url"], "fileId": result["fileId"]}
