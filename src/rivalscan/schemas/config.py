"""Configuration schema — validates rivalscan.yml."""

from pydantic import BaseModel, field_validator, model_validator

DEFAULT_AUTOMATION_API_URL = "https://agent.tinyfish.ai/v1/automation/run-sse"


class ScanConfig(BaseModel):
    """Runtime settings for the server and the CLI.

    API keys are normally left out of the file and resolved from the
    environment by ``rivalscan.config.load_config``.
    """

    # Automation backend
    automation_api_url: str = DEFAULT_AUTOMATION_API_URL
    automation_api_key: str = ""
    automation_connect_timeout: float = 30.0
    # None = wait as long as the backend keeps the stream open
    automation_read_timeout: float | None = None

    # Report synthesis
    llm_model: str = "gpt-4o"
    llm_max_tokens: int = 4_096
    openai_api_key: str = ""

    # Request handling
    max_duration_seconds: float = 300.0
    host: str = "127.0.0.1"
    port: int = 8000

    # CLI output
    output_directory: str = "./output"

    @field_validator("automation_api_url")
    @classmethod
    def check_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"automation_api_url must be an http(s) URL, got {v!r}")
        return v

    @model_validator(mode="after")
    def check_positive_limits(self) -> "ScanConfig":
        if self.max_duration_seconds <= 0:
            raise ValueError("max_duration_seconds must be positive")
        if self.automation_read_timeout is not None and self.automation_read_timeout <= 0:
            raise ValueError("automation_read_timeout must be positive when set")
        return self
