from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Rates backend (data-fetch + persistence collaborators)
    rates_api_base_url: str = "http://localhost:3001/api"
    rates_api_token: str = ""
    request_timeout_seconds: float = 15.0

    # Edit authority for the dashboard (access level 1 in the rates backend)
    can_edit_rates: bool = False

    # App
    debug: bool = False
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]


settings = Settings()
