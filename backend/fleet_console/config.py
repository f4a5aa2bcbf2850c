from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    fleet_api_base_url: str = "http://localhost:8000"
    fleet_api_token: str = ""
    request_timeout_seconds: float = 30.0
    search_debounce_ms: int = 300
    search_min_chars: int = 2
    search_page_size: int = 15

    model_config = {"env_prefix": "", "case_sensitive": False}


settings = Settings()
