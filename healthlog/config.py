from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    API_KEY: str
    LOG_LEVEL: str = "INFO"
    DB_ECHO: bool = False

    class Config:
        env_file = ".env"


settings = Settings()
