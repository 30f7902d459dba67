"""
Application configuration
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """crossworld settings, read from CROSSWORLD_* environment variables"""

    # Toolchain
    NATIVE_TUPLE: str | None = None  # skip `gcc -dumpmachine` detection
    TOOLCHAIN_PROBE_TIMEOUT: int = 5  # seconds
    COMPILE_TIMEOUT: int = 600  # seconds

    # Harness
    AUTOMATE_TIMEOUT: int = 30  # seconds
    DRAIN_TIMEOUT: float = 5.0  # seconds to flush output after the child is killed

    # Runner
    INSTANCES_MANIFEST: str = "instances.json"
    TARGET_PATH: str = "build"
    REPORTS_PATH: str = "/tmp/crossworld_reports"

    LOG_LEVEL: str = "INFO"

    class Config:
        env_prefix = "CROSSWORLD_"
        env_file = ".env"
        case_sensitive = True


settings = Settings()
