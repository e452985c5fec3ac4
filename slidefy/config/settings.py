# slidefy/config/settings.py
from pydantic_settings import BaseSettings
from typing import Dict, List, Optional

class Settings(BaseSettings):
    # API
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Slidefy Carousel Service"

    # CORS
    ALLOWED_HOSTS: List[str] = ["*"]

    # Auth
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: str = "secret"

    # Templates
    TEMPLATES_DIR: str = "templates"

    # Fonts
    FONTS_DIR: str = "fonts"
    DEFAULT_FONT_FAMILY: str = "Inter"
    DEFAULT_FONT_STYLE: str = "Regular"
    # "Family Style" -> "Family Style", tried before the generic fallbacks
    FONT_ALIASES: Dict[str, str] = {}

    # Images
    MAX_IMAGE_DIMENSION: int = 4096
    MAX_IMAGE_BYTES: int = 20 * 1024 * 1024
    DEFAULT_PHOTO_LAYER_PREFIX: str = "photo-"
    REQUEST_TIMEOUT: int = 30
    IMAGES_RESPONSE_TIMEOUT: float = 120.0

    # Export
    EXPORT_INSTRUCTIONS_ENABLED: bool = True
    EXPORT_INSTRUCTIONS_GAP: int = 24
    RENDER_FORMAT: str = "png"
    JPEG_QUALITY: int = 88
    ENDPOINT_TIMEOUT_SECONDS: float = 55.0

    # Cloudinary (either use CLOUDINARY_URL or the 3 fields below)
    CLOUDINARY_URL: Optional[str] = None
    CLOUDINARY_CLOUD_NAME: Optional[str] = None
    CLOUDINARY_API_KEY: Optional[str] = None
    CLOUDINARY_API_SECRET: Optional[str] = None
    CLOUDINARY_FOLDER: str = "slidefy-carousels"

    # Env
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    @property
    def cloudinary_enabled(self) -> bool:
        return bool(self.CLOUDINARY_URL or (self.CLOUDINARY_CLOUD_NAME and self.CLOUDINARY_API_KEY and self.CLOUDINARY_API_SECRET))

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
