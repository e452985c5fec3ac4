# slidefy/infrastructure/cloudinary/upload_file.py
from io import BytesIO
from typing import List, Optional

import cloudinary
import cloudinary.uploader

from slidefy.config.settings import settings
from slidefy.infrastructure.render.rasterizer import RenderedSlice, encode_image


# Configure once; CLOUDINARY_URL in the environment is picked up by the SDK itself
if settings.CLOUDINARY_CLOUD_NAME:
    cloudinary.config(
        cloud_name=settings.CLOUDINARY_CLOUD_NAME,
        api_key=settings.CLOUDINARY_API_KEY,
        api_secret=settings.CLOUDINARY_API_SECRET,
        secure=True,
    )

def upload_rendered_slice(
    rendered: RenderedSlice,
    run_id: str,
    folder: str = settings.CLOUDINARY_FOLDER,
    fmt: str = "png",
    quality: int = 88,
    tags: Optional[List[str]] = None,
) -> str:
    fmt = (fmt or "png").lower()
    buf = BytesIO(encode_image(rendered.image, fmt, quality))

    res = cloudinary.uploader.upload(
        buf,
        resource_type="image",
        folder=folder,
        public_id=f"{run_id}_{rendered.name}",
        overwrite=True,
        format=fmt,              # final extension in Cloudinary
        tags=tags or [],
    )
    return res["secure_url"]
