from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Auth: an API key wins over the OAuth credential file
    gemini_api_key: str = ""
    oauth_client_id: str = ""
    oauth_client_secret: str = ""
    oauth_creds_path: str = "~/.gemini/oauth_creds.json"
    oauth_token_endpoint: str = "https://oauth2.googleapis.com/token"

    # Gemini
    gemini_model: str = "gemini-2.5-flash"
    code_assist_base_url: str = "https://cloudcode-pa.googleapis.com"
    code_assist_max_retries: int = 3
    code_assist_initial_delay_ms: int = 4000
    code_assist_max_delay_ms: int = 60000
    onboard_poll_max: int = 30
    onboard_poll_interval_ms: int = 1000

    # Batch pacing
    batch_size: int = 5
    rate_limit_delay: int = 100  # ms between batches

    # Scraping
    cache_ttl: int = 3600  # seconds
    scrape_timeout: int = 10000  # ms per attempt
    scrape_retries: int = 3
    excerpt_length: int = 1000
    summary_length: int = 5000
    max_content_length: int = 10000

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_to_file: bool = False
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def creds_path(self) -> Path:
        return Path(self.oauth_creds_path).expanduser()


settings = Settings()
