from __future__ import annotations

import io
from pathlib import Path
from typing import Tuple

from PIL import Image, ImageOps

from imaging.thumbnail_errors import ThumbnailError
from sessions.naming import is_video_file

DEFAULT_THUMBNAIL_SIZE = (320, 320)


def render_thumbnail(
        path: Path,
        max_size: Tuple[int, int] = DEFAULT_THUMBNAIL_SIZE,
        background_color: Tuple[int, int, int] = (0, 0, 0),
) -> bytes:
    """Render a JPEG gallery thumbnail for a captured photo.

    The image is rotated according to its EXIF orientation and shrunk to fit
    within `max_size` without cropping. Transparent sources are flattened onto
    `background_color`.
    """
    if is_video_file(path.name):
        raise ThumbnailError(f"No thumbnail for video: {path.name}")
    if max_size[0] <= 0 or max_size[1] <= 0:
        raise ThumbnailError("Invalid thumbnail size")

    try:
        with Image.open(path) as src:
            img = ImageOps.exif_transpose(src)
            img.thumbnail(max_size, resample=Image.Resampling.LANCZOS)
            if img.mode in ("RGBA", "LA", "P"):
                rgba = img.convert("RGBA")
                flat = Image.new("RGB", rgba.size, background_color)
                flat.paste(rgba, mask=rgba.getchannel("A"))
                img = flat
            else:
                img = img.convert("RGB")
    except Exception as e:
        raise ThumbnailError(f"Failed to load image: {path}") from e

    out = io.BytesIO()
    img.save(out, format="JPEG", quality=85)
    return out.getvalue()
