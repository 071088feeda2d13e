from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # runtime env
    env: str = "dev"

    # backing store (post records + rq queues)
    redis_url: str = "redis://redis:6379/0"
    ingest_queue: str = "ingest"

    # the ONLY host images are served from (must match for normalizer + relay)
    trusted_origin_host: str = "divedeck.net"

    # relay endpoint + how rewritten <img> references point at it
    relay_path: str = "/api/image"
    relay_base_url: str = ""                 # "" → site-relative /api/image?u=...
    relay_cache_bust: Optional[str] = None   # appended as &v=<token> when set
    relay_connect_timeout: float = 3.0
    relay_read_timeout: float = 10.0
    relay_max_redirects: int = 5
    relay_max_bytes: int = 0                 # 0 → no cap

    # WordPress REST source
    wp_base_url: Optional[str] = None        # None → https://{trusted_origin_host}
    wp_username: str = ""
    wp_app_password: str = ""
    wp_timeout: float = 10.0

    # label stored on persisted records
    record_source: str = "ddhq-lite"

    class Config:
        env_file = ".env"

    @property
    def site_base_url(self) -> str:
        base = self.wp_base_url or f"https://{self.trusted_origin_host}"
        return base.strip().rstrip("/")


settings = Settings()
