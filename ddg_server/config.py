from pydantic import Field
from pydantic_settings import BaseSettings
from typing import Annotated, Literal, Optional, Union

AUTO = "auto"

class Settings(BaseSettings):
    page_size: Union[Annotated[int, Field(ge=1, le=100)], Literal["auto"]] = AUTO
    safe_search: Literal["strict", "moderate", "off", "auto"] = AUTO
    request_timeout: int = 30
    min_request_interval: float = Field(default=2.0, ge=0)
    token_settle_delay: float = Field(default=1.0, ge=0)
    locale: str = "us-en"
    download_images: bool = True
    download_directory: Optional[str] = None
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_prefix = "DDG_"
        extra = "ignore"

settings = Settings()
