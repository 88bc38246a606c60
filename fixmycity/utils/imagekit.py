"""Thin client for the ImageKit upload API."""
import logging

import requests

from fixmycity.utils.errors import Upstream

logger = logging.getLogger(__name__)


class ImageKitClient:
    def __init__(self, settings, session: requests.Session = None, timeout: float = 30):
        self.settings = settings
        self.session = session or requests.Session()
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return self.settings.imagekit_configured

    def upload(self, content: bytes, file_name: str, folder: str = "complaints") -> dict:
        if not self.configured:
            raise Upstream("Image storage is not configured. Missing IMAGEKIT_* environment variables.")

        try:
            response = self.session.post(
                self.settings.IMAGEKIT_UPLOAD_URL,
                auth=(self.settings.IMAGEKIT_PRIVATE_KEY, ""),
                files={"file": (file_name, content)},
                data={"fileName": file_name, "folder": folder, "useUniqueFileName": "true"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("ImageKit upload failed", extra={"file_name": file_name, "reason": str(exc)})
            raise Upstream(f"Upload failed: {exc}") from exc

        if not response.ok:
            try:
                message = response.json().get("message")
            except ValueError:
                message = None
            logger.error("ImageKit rejected upload", extra={"status": response.status_code, "file_name": file_name})
            raise Upstream(message or f"Upload failed with status {response.status_code}")

        result = response.json()
        return {"url": result["url"], "fileId": result["fileId"]}
