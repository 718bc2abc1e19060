import os
from dataclasses import dataclass

DEFAULT_PRIMARY_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1/chat/completions"


@dataclass(frozen=True)
class Config:
    primary_url: str = DEFAULT_PRIMARY_URL
    primary_api_key: str = ""
    fallback_url: str = ""
    fallback_api_key: str = ""
    model: str = "qwen-plus"
    temperature: float = 0.7
    max_tokens: int = 1024
    timeout_seconds: float = 60.0
    history_limit: int = 20
    log_format: str = "text"
    log_level: str = "INFO"

    @property
    def is_configured(self) -> bool:
        return bool(self.primary_url and self.primary_api_key)

    @property
    def has_fallback(self) -> bool:
        return bool(self.fallback_url and self.fallback_api_key)

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            primary_url=os.environ.get("LUMI_PRIMARY_URL", DEFAULT_PRIMARY_URL).strip(),
            primary_api_key=os.environ.get("LUMI_PRIMARY_API_KEY", "").strip(),
            fallback_url=os.environ.get("LUMI_FALLBACK_URL", "").strip(),
            fallback_api_key=os.environ.get("LUMI_FALLBACK_API_KEY", "").strip(),
            model=os.environ.get("LUMI_MODEL", "qwen-plus").strip(),
            temperature=float(os.environ.get("LUMI_TEMPERATURE", "0.7")),
            max_tokens=int(os.environ.get("LUMI_MAX_TOKENS", "1024")),
            timeout_seconds=float(os.environ.get("LUMI_TIMEOUT_SECONDS", "60")),
            history_limit=int(os.environ.get("LUMI_HISTORY_LIMIT", "20")),
            log_format=os.environ.get("LUMI_LOG_FORMAT", "text").strip().lower(),
            log_level=os.environ.get("LUMI_LOG_LEVEL", "INFO").strip().upper(),
        )
