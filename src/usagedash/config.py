import os
from dataclasses import dataclass


@dataclass
class Config:
    # listen_address: format ":8790" or
    # "0.0.0.0:8790"
    listen_address: "str" = ":8790"
    log_level: "str" = "info"
    # "console" or "json"
    log_format: "str" = "console"

    anthropic_api_key: "str" = ""
    openai_api_key: "str" = ""
    openai_org_id: "str" = ""

    # optional JSON file overriding the built-in pricing tables
    pricing_file: "str" = ""
    # trailing days covered by the hourly gap-fill query
    hourly_window_days: "int" = 3
    # range used when the caller omits start
    default_range_days: "int" = 7
    # per-request upstream timeout in seconds
    http_timeout: "float" = 10.0

    @classmethod
    def from_env(cls) -> "Config":
        return cls(
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            openai_api_key=os.environ.get("OPENAI_API_KEY", ""),
            openai_org_id=os.environ.get("OPENAI_ORG_ID", ""),
            pricing_file=os.environ.get("USAGEDASH_PRICING_FILE", ""),
            hourly_window_days=int(os.environ.get("USAGEDASH_HOURLY_WINDOW_DAYS", "3")),
            default_range_days=int(os.environ.get("USAGEDASH_DEFAULT_RANGE_DAYS", "7")),
            http_timeout=float(os.environ.get("USAGEDASH_HTTP_TIMEOUT", "10.0")),
        )

    def api_key_for(self, provider: "str") -> "str":
        return {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
        }.get(provider, "")
