from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore", frozen=True)

    image_dir: str = "images"
    public_dir: str = "public"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "info"
    app_version: str = "0.1.0"
    cors_origins: list[str] = ["*"]
    legacy_resize_routes: bool = False
    render_timeout_seconds: float | None = None


settings = Settings()
