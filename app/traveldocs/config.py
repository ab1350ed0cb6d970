import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    auto_create_schema: bool

    storage_backend: str
    storage_root: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str

    travelers_cache_backend: str
    travelers_cache_dir: str
    travelers_list_fetch_limit: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    env = _getenv("ENV", "development")
    is_production = env.lower() in ("prod", "production")
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=env,
        database_url=_getenv("DATABASE_URL", "sqlite:///travelers.db"),
        # Production schema is owned by alembic; everything else bootstraps itself.
        auto_create_schema=_getenv("AUTO_CREATE_SCHEMA", "0" if is_production else "1") == "1",
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        storage_root=_getenv("STORAGE_ROOT", os.path.join(os.getcwd(), "storage")),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        travelers_cache_backend=_getenv("TRAVELERS_CACHE_BACKEND", "file"),
        travelers_cache_dir=_getenv("TRAVELERS_CACHE_DIR", os.getcwd()),
        travelers_list_fetch_limit=_getenv_int("TRAVELERS_LIST_FETCH_LIMIT", 10000),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "AUTO_CREATE_SCHEMA": s.auto_create_schema,
        "STORAGE_BACKEND": s.storage_backend,
        "STORAGE_ROOT": s.storage_root,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "TRAVELERS_CACHE_BACKEND": s.travelers_cache_backend,
        "TRAVELERS_CACHE_DIR": s.travelers_cache_dir,
        "TRAVELERS_LIST_FETCH_LIMIT": s.travelers_list_fetch_limit,
        # file upload limits (25MB)
        "MAX_CONTENT_LENGTH": 25 * 1024 * 1024,
    }
