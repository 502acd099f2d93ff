"""Configuration loading from YAML and environment.

Secrets (tokens, webhook secrets, model credentials) are taken from
environment variables or from files (Docker secrets). Never put real
tokens in config files committed to the repo.

The resulting AppConfig is frozen: it is built once at startup and
passed into each component.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hookrelay.models import ForwardTarget

GITHUB_TOKEN_PREFIXES = ("ghp_", "github_pat_", "gho_", "ghu_", "ghs_")


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


# Injected by load_config so secret resolution can read env/file
_current_env: dict[str, str] = {}


def _is_placeholder(value: str | None) -> bool:
    return not value or value.startswith("${") or value.startswith("your-")


def looks_like_github_token(token: str | None) -> bool:
    """True when token has the shape of a real GitHub access token."""
    return bool(token) and token.startswith(GITHUB_TOKEN_PREFIXES)


def _parse_targets(value: Any) -> Any:
    """Accept comma-separated URLs, a list of URLs, or a list of mappings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [part for part in value.split(",")]
    if isinstance(value, list):
        targets = []
        for item in value:
            if isinstance(item, str):
                item = item.strip()
                if not item:
                    continue
                targets.append({"url": item})
            else:
                targets.append(item)
        return targets
    return value


class BotConfig(BaseSettings):
    """Assistant identity and trigger."""

    model_config = SettingsConfigDict(env_prefix="BOT_", extra="ignore", frozen=True)

    name: str = Field(default="MCPClaude", description="Assistant display name")
    trigger: str = Field(default="@MCPClaude", description="Token in a comment that marks an embedded command")
    username: str | None = Field(default=None, description="Bot GitHub login (its own comments are ignored)")


class GitHubConfig(BaseSettings):
    """GitHub API and webhook settings."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", extra="ignore", frozen=True)

    token: str | None = Field(default=None, description="PAT or app token; use env or secret file")
    api_url: str = Field(default="https://api.github.com", description="API base URL")
    web_url: str = Field(default="https://github.com", description="Base URL used for cloning")
    webhook_secret: str = Field(default="", description="Secret for webhook verification")
    webhook_path: str = Field(default="/api/webhooks/github", description="Webhook URL path")


class ForwardingConfig(BaseSettings):
    """Outgoing webhook fanout settings."""

    model_config = SettingsConfigDict(env_prefix="FORWARDING_", extra="ignore", frozen=True)

    targets: list[ForwardTarget] = Field(default_factory=list, description="Receive every admitted event")
    comment_targets: list[ForwardTarget] = Field(
        default_factory=list, description="Receive newly created issue/PR comments only"
    )
    secret: str = Field(default="", description="Secret used to sign forwarded payloads")
    timeout: int = Field(default=10, ge=1, description="Per-target request timeout in seconds")

    @field_validator("targets", "comment_targets", mode="before")
    @classmethod
    def _coerce_targets(cls, value: Any) -> Any:
        return _parse_targets(value)


class ExecutorConfig(BaseSettings):
    """Command interpreter and sandbox settings."""

    model_config = SettingsConfigDict(env_prefix="EXECUTOR_", extra="ignore", frozen=True)

    command: str = Field(default="claude", description="Command interpreter binary")
    args: list[str] = Field(default_factory=lambda: ["--print"], description="Args placed before the command text")
    timeout: int = Field(default=180, ge=1, description="Wall-clock limit per invocation in seconds")
    use_containers: bool = Field(default=False, description="Allow isolated (container) execution")
    image: str = Field(default="claudecode:latest", description="Sandbox container image")
    cache_dir: str | None = Field(default=None, description="Repository cache root (default: <tmp>/repo-cache)")
    use_cache: bool = Field(default=True, description="Reuse cached checkouts in the sandbox")
    model: str | None = Field(default=None, description="ANTHROPIC_MODEL passed to the interpreter")
    use_bedrock: bool = Field(default=False, description="Route the interpreter through AWS Bedrock")
    aws_region: str | None = Field(default=None, description="AWS region for Bedrock")


class CommandsConfig(BaseSettings):
    """Direct command endpoint settings."""

    model_config = SettingsConfigDict(env_prefix="COMMANDS_", extra="ignore", frozen=True)

    path: str = Field(default="/api/commands", description="Direct command URL path")
    auth_required: bool = Field(default=False, description="Require authToken in request body")
    auth_token: str | None = Field(default=None, description="Expected authToken; prefer env or secret file")


class ServerConfig(BaseSettings):
    """HTTP server settings."""

    model_config = SettingsConfigDict(env_prefix="SERVER_", extra="ignore", frozen=True)

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=3003, ge=0, le=65535, description="Bind port")


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore", frozen=True)

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore", frozen=True)

    environment: str = Field(default="production", description="production or test")
    bot: BotConfig = Field(default_factory=BotConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    forwarding: ForwardingConfig = Field(default_factory=ForwardingConfig)
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def is_test_mode(self) -> bool:
        return self.environment.strip().lower() == "test"

    @property
    def github_token_resolved(self) -> str | None:
        """Resolve GitHub token from config, env or Docker secret file."""
        t = self.github.token
        if not _is_placeholder(t):
            return t
        return _read_secret("GITHUB_TOKEN", "GITHUB_TOKEN_FILE")

    @property
    def has_valid_github_token(self) -> bool:
        return looks_like_github_token(self.github_token_resolved)

    @property
    def webhook_secret_resolved(self) -> str:
        """Resolve inbound webhook secret from config, env or Docker secret
        file."""
        s = self.github.webhook_secret
        if not _is_placeholder(s):
            return s
        return _read_secret("WEBHOOK_SECRET", "WEBHOOK_SECRET_FILE") or ""

    @property
    def forwarding_secret_resolved(self) -> str:
        s = self.forwarding.secret
        if not _is_placeholder(s):
            return s
        return _read_secret("OUTGOING_WEBHOOK_SECRET", "OUTGOING_WEBHOOK_SECRET_FILE") or ""

    @property
    def commands_token_resolved(self) -> str | None:
        t = self.commands.auth_token
        if not _is_placeholder(t):
            return t
        return _read_secret("COMMAND_API_TOKEN", "COMMAND_API_TOKEN_FILE")

    def interpreter_environment(self) -> dict[str, str]:
        """Credentials and model selection for the command interpreter.

        Only non-empty values are returned. Values must never be logged.
        """
        env: dict[str, str] = {}
        api_key = _read_secret("ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY_FILE")
        if api_key:
            env["ANTHROPIC_API_KEY"] = api_key
        if self.executor.model:
            env["ANTHROPIC_MODEL"] = self.executor.model
        if self.executor.use_bedrock:
            env["CLAUDE_CODE_USE_BEDROCK"] = "1"
            for key in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
                value = _read_secret(key, f"{key}_FILE")
                if value:
                    env[key] = value
            if self.executor.aws_region:
                env["AWS_REGION"] = self.executor.aws_region
        return env


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: GITHUB_TOKEN, WEBHOOK_SECRET, OUTGOING_WEBHOOK_SECRET,
    ANTHROPIC_API_KEY, AWS_* and COMMAND_API_TOKEN (each also as *_FILE).
    Forward targets may also be given as comma-separated
    OUTGOING_WEBHOOK_URLS and COMMENT_WEBHOOK_URLS.
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    raw: dict[str, Any] = {}
    if path.is_file():
        raw = yaml.safe_load(path.read_text()) or {}
        raw = _substitute_env(raw)

    forwarding_raw = dict(raw.get("forwarding") or {})
    if _current_env.get("OUTGOING_WEBHOOK_URLS") and not forwarding_raw.get("targets"):
        forwarding_raw["targets"] = _current_env["OUTGOING_WEBHOOK_URLS"]
    if _current_env.get("COMMENT_WEBHOOK_URLS") and not forwarding_raw.get("comment_targets"):
        forwarding_raw["comment_targets"] = _current_env["COMMENT_WEBHOOK_URLS"]

    environment = raw.get("environment") or _current_env.get("ENVIRONMENT") or "production"

    return AppConfig(
        environment=environment,
        bot=BotConfig(**(raw.get("bot") or {})),
        github=GitHubConfig(**(raw.get("github") or {})),
        forwarding=ForwardingConfig(**forwarding_raw),
        executor=ExecutorConfig(**(raw.get("executor") or {})),
        commands=CommandsConfig(**(raw.get("commands") or {})),
        server=ServerConfig(**(raw.get("server") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
