from pydantic import SecretStr
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    log_level: str = "INFO"

    # Step settings
    step_timeout: int = 900  # 15 minutes default
    output_tail_lines: int = 1000

    # Credentials, only ever handed to the step that asks for them
    renovate_token: SecretStr = SecretStr("")

    # Identity used when committing generated docs
    git_author_name: str = "tfpipe-bot"
    git_author_email: str = "tfpipe-bot@users.noreply.github.com"

    class Config:
        env_file = ".env"
        env_prefix = "TFPIPE_"

@lru_cache()
def get_settings() -> Settings:
    return Settings()
