from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    database_url: str = "duckdb://./mealgate/data/mealgate.duckdb"

    # API
    api_title: str = "MealGate API"
    api_version: str = "1.0.0"
    api_prefix: str = "/api/v1"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Scanning
    default_station_id: str = "MANUAL_STATION"
    unlimited_usage_display: int = 999  # mealCount shown for cards without max_usage

    # QR printing
    qr_box_size: int = 10
    qr_border: int = 4

    # Development mode
    debug: bool = False

    class Config:
        env_file = ".env"
        env_prefix = "MEALGATE_"
        case_sensitive = False


# Global settings instance
settings = Settings()
