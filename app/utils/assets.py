"""
Image asset pipeline: validate -> fit to canvas -> persist -> serve.

Records keep asset keys such as ``v1/workshops/3/album/<pic_id>.png``;
only AssetStore knows where a key lives on disk.
"""

from io import BytesIO
from pathlib import Path
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException, UploadFile
from PIL import Image, ImageOps, UnidentifiedImageError

from app.config import settings

import logging
logger = logging.getLogger("app.assets")

ALLOWED_EXT = {".jpg", ".jpeg", ".png"}
CANVAS_SIZE = (1280, 960)


class AssetStore:
    def __init__(self, root: Path, version: str):
        self.root = Path(root).resolve()
        self.version = version

    # keys
    def workshop_main_key(self, workshop_id: int) -> str:
        return f"{self.version}/workshops/{workshop_id}/mainPic.png"

    def workshop_album_key(self, workshop_id: int, pic_id: str) -> str:
        return f"{self.version}/workshops/{workshop_id}/album/{pic_id}.png"

    def teacher_key(self, teacher_id: int) -> str:
        return f"{self.version}/teachers/{teacher_id}/pic.png"

    @staticmethod
    def new_picture_id() -> str:
        return uuid4().hex

    # storage
    def path_for(self, key: str) -> Optional[Path]:
        """Filesystem path of a key, or None when the key escapes the root."""
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            return None
        return path

    def open_path(self, key: str) -> Optional[Path]:
        path = self.path_for(key)
        if path is None or not path.is_file():
            return None
        return path

    def save(self, key: str, data: bytes) -> Path:
        path = self.path_for(key)
        if path is None:
            raise ValueError(f"Asset key outside upload root: {key}")
        # concurrent uploads may race here; exist_ok tolerates it
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored asset %s (%d bytes)", key, len(data))
        return path

    def delete(self, key: Optional[str]) -> bool:
        """Best-effort removal. Failures are logged, never raised."""
        if not key:
            return False
        path = self.path_for(key)
        if path is None:
            return False
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Asset %s already missing", key)
            return False
        except OSError:
            logger.warning("Could not remove asset %s", key, exc_info=True)
            return False
        logger.info("Removed asset %s", key)
        return True


asset_store = AssetStore(Path(settings.UPLOAD_DIR), settings.SITE_VERSION)


def get_asset_store() -> AssetStore:
    return asset_store


def check_image_filename(filename: Optional[str]) -> None:
    suffix = Path(filename or "").suffix.lower()
    if suffix not in ALLOWED_EXT:
        raise HTTPException(
            status_code=400,
            detail=f"Please upload an image. Only {sorted(ALLOWED_EXT)} are allowed",
        )


def render_picture(content: bytes) -> bytes:
    """Fit an uploaded image onto the fixed canvas and encode it as PNG."""
    try:
        with Image.open(BytesIO(content)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            fitted = ImageOps.fit(img, CANVAS_SIZE, method=Image.Resampling.LANCZOS)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise HTTPException(status_code=400, detail="Invalid image file") from exc

    buf = BytesIO()
    fitted.save(buf, format="PNG")
    return buf.getvalue()


async def prepare_picture(file: UploadFile) -> bytes:
    """Validate and render one upload. Nothing touches the asset store here."""
    check_image_filename(file.filename)

    max_size = settings.MAX_UPLOAD_SIZE
    content = await file.read(max_size + 1)
    await file.close()
    if len(content) > max_size:
        raise HTTPException(status_code=400, detail=f"File too large (max {max_size} bytes)")

    return render_picture(content)
