from __future__ import annotations
from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
    # Remote gym API
    gym_api_base_url: str = Field("https://api.any-gym.com", alias="GYM_API_BASE_URL")
    check_in_path: str = Field("/admin/check_in", alias="CHECK_IN_PATH")
    check_in_complete_path: str = Field("/admin/check_in/complete", alias="CHECK_IN_COMPLETE_PATH")
    identity_header: str = Field("auth0_id", alias="IDENTITY_HEADER")
    pass_code_header: str = Field("pass_code", alias="PASS_CODE_HEADER")
    api_timeout_seconds: float = Field(default=10.0, alias="API_TIMEOUT_SECONDS")

    # Identity provider
    auth_jwks_url: str = Field(..., alias="AUTH_JWKS_URL")
    token_issuer: str | None = Field(default=None, alias="TOKEN_ISSUER")

    # Camera scanning
    camera_index: int = Field(default=0, alias="CAMERA_INDEX")
    scan_fps: int = Field(default=10, alias="SCAN_FPS")
    scan_region: int = Field(default=250, alias="SCAN_REGION")  # square detection box, px

    # Generated pass images
    qr_image_size: int = Field(default=200, alias="QR_IMAGE_SIZE")
    qr_border: int = Field(default=2, alias="QR_BORDER")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_prefix = ""
        case_sensitive = False

    @property
    def check_in_url(self) -> str:
        return self.gym_api_base_url.rstrip("/") + self.check_in_path

    @property
    def check_in_complete_url(self) -> str:
        return self.gym_api_base_url.rstrip("/") + self.check_in_complete_path

_settings: Settings | None = None
def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
