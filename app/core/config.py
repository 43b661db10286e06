import tempfile
from os import getenv, path
from dotenv import load_dotenv

load_dotenv()

class Config:

    ALLOWED_ORIGINS: list = getenv("ALLOWED_ORIGINS", "http://localhost:5173").split(",")


    POSTGRES_USER: str = getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = getenv("POSTGRES_PASSWORD", "postgres")
    POSTGRES_DB: str = getenv("POSTGRES_DB", "tenders")
    POSTGRES_HOST: str = getenv("POSTGRES_HOST", "db")
    POSTGRES_PORT: str = getenv("POSTGRES_PORT", "5432")

    @property
    def DATABASE_URL(self) -> str:
        return getenv(
            "DATABASE_URL",
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # S3-compatible object storage
    S3_ENDPOINT_URL: str = getenv("S3_ENDPOINT_URL")
    S3_BUCKET_NAME: str = getenv("S3_BUCKET_NAME")
    S3_REGION: str = getenv("S3_REGION")
    S3_ACCESS_KEY: str = getenv("S3_ACCESS_KEY")
    S3_SECRET_KEY: str = getenv("S3_SECRET_KEY")
    # Base used to build document URLs; falls back to the endpoint
    S3_PUBLIC_URL: str = getenv("S3_PUBLIC_URL")

    # Bearer tokens issued by the identity service
    JWT_SECRET: str = getenv("JWT_SECRET")
    JWT_ALGORITHM: str = getenv("JWT_ALGORITHM", "HS256")

    # Uploads
    MAX_FILE_SIZE: int = int(getenv("MAX_FILE_SIZE", str(5 * 1024 * 1024)))
    ALLOWED_MIME_TYPES: list = getenv(
        "ALLOWED_MIME_TYPES",
        "application/pdf,"
        "application/msword,"
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ).split(",")
    UPLOAD_TIMEOUT_SECONDS: float = float(getenv("UPLOAD_TIMEOUT_SECONDS", "60"))
    UPLOAD_TMP_DIR: str = getenv("UPLOAD_TMP_DIR", path.join(tempfile.gettempdir(), "tender-uploads"))

    # When true, a failed storage removal blocks tender/document deletion
    BLOCKING_STORAGE_CLEANUP: bool = getenv("BLOCKING_STORAGE_CLEANUP", "false").lower() in ("true", "1", "yes")

    LOG_LEVEL: str = getenv("LOG_LEVEL", "INFO")
    LOG_FILE: str = getenv("LOG_FILE")

    # Application port
    APP_PORT: int = int(getenv("APP_PORT", "8000"))

    def validate(self) -> None:
        """Checks that the required environment variables are present."""
        required_vars = {
            "S3_BUCKET_NAME": self.S3_BUCKET_NAME,
            "S3_ACCESS_KEY": self.S3_ACCESS_KEY,
            "S3_SECRET_KEY": self.S3_SECRET_KEY,
            "JWT_SECRET": self.JWT_SECRET,
        }
        missing_vars = [key for key, value in required_vars.items() if not value]
        if missing_vars:
            raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

settings = Config()
