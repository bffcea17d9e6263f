"""Application configuration. Loads from environment and .env file."""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
# Load .env from cwd, then backend/.env, then project root .env
load_dotenv()
load_dotenv(BASE_DIR / ".env")
load_dotenv(BASE_DIR.parent / ".env")

# Accepted upload extensions (without dot)
ALLOWED_EXTENSIONS = ("jpeg", "jpg", "png", "gif", "webp", "svg", "heic", "jfif")

# Quality bounds shared by plain compression and the target-size search
MIN_QUALITY = 10
MAX_QUALITY = 100
DEFAULT_QUALITY = 70

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("image_api")


def _csv(value: str) -> list[str]:
    return [o.strip() for o in value.split(",") if o.strip()]


@dataclass
class Settings:
    """Runtime settings handed to the app factory and exposed to handlers via app.state."""

    upload_dir: Path = BASE_DIR / "uploads"
    output_dir: Path = BASE_DIR / "output"
    max_upload_size_mb: int = 100
    max_bulk_files: int = 10
    # Bulk outputs are served by URL, so they live until the sweeper removes them
    output_ttl_seconds: int = 60
    cleanup_interval_seconds: int = 30
    max_workers: int = min(32, (os.cpu_count() or 4) + 4)
    public_base_url: Optional[str] = None
    cors_origins: list[str] = field(default_factory=list)
    host: str = "0.0.0.0"
    port: int = 5000

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @classmethod
    def from_env(cls) -> "Settings":
        public_base_url = os.getenv("PUBLIC_BASE_URL", "").strip().rstrip("/") or None
        return cls(
            upload_dir=Path(os.getenv("UPLOAD_DIR", str(BASE_DIR / "uploads"))),
            output_dir=Path(os.getenv("OUTPUT_DIR", str(BASE_DIR / "output"))),
            max_upload_size_mb=int(os.getenv("MAX_UPLOAD_SIZE_MB", "100")),
            max_bulk_files=int(os.getenv("MAX_BULK_FILES", "10")),
            output_ttl_seconds=int(os.getenv("OUTPUT_TTL_SECONDS", "60")),
            cleanup_interval_seconds=int(os.getenv("CLEANUP_INTERVAL_SECONDS", "30")),
            max_workers=int(os.getenv("MAX_WORKERS", str(min(32, (os.cpu_count() or 4) + 4)))),
            public_base_url=public_base_url,
            # CORS: comma-separated origins; empty means allow all
            cors_origins=_csv(os.getenv("CORS_ORIGINS", "")),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "5000")),
        )
