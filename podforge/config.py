from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    PORT: int = 3002
    DB_PATH: str = "/data/podforge.db"
    LOG_LEVEL: str = "info"

    FIRECRAWL_API_URL: str = "https://api.firecrawl.dev"
    FIRECRAWL_API_KEY: str = ""

    ELEVENLABS_API_URL: str = "https://api.elevenlabs.io"
    ELEVENLABS_API_KEY: str = ""
    ELEVENLABS_MODEL_ID: str = "eleven_multilingual_v2"

    AZURE_SPEECH_KEY: str = ""
    AZURE_SPEECH_REGION: str = "eastus"
    AZURE_SPEECH_VOICE: str = "en-US-AriaNeural"

    PRIMARY_TTS_PROVIDER: str = "azure"

    LLM_API_URL: str = "https://api.openai.com/v1"
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "gpt-4o-mini"
    SCRIPT_MAX_ATTEMPTS: int = 2

    VOICE_CACHE_TTL_SECONDS: int = 3600
    VOICE_REFRESH_INTERVAL_SECONDS: int = 3600
    HEALTH_CHECK_INTERVAL_SECONDS: int = 300

    FEED_CACHE_TTL_SECONDS: int = 3600
    FEED_MAX_EPISODES: int = 100
    DEFAULT_FEED_ID: str = "default"
    FEED_TITLE: str = "Podforge"
    FEED_DESCRIPTION: str = "Episodes generated from web articles, videos and documents"
    FEED_LINK: str = "http://localhost:3002"
    FEED_AUTHOR: str = "Podforge"
    FEED_EMAIL: str = "admin@example.com"
    FEED_CATEGORY: str = "Technology"
    FEED_ARTWORK_URL: str = ""
    FEED_LANGUAGE: str = "en-us"

    STORAGE_DIR: str = "/data/audio"
    PUBLIC_BASE_URL: str = "http://localhost:3002/audio"

    CDN_PURGE_URL: str = ""
    CDN_API_KEY: str = ""

    JOB_MAX_RETRIES: int = 3


settings = Settings()
