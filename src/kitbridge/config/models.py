"""Pydantic v2 models for kitbridge.yaml configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from kitbridge.constants import DEFAULT_RUNTIMES


class SessionConfig(BaseModel):
    """Timing and protocol settings for script sessions."""

    model_config = ConfigDict(extra="forbid")

    term_grace_ms: int = Field(
        default=250,
        ge=0,
        description="Wait after SIGTERM before escalating to SIGKILL",
    )
    poll_interval_ms: int = Field(
        default=50,
        gt=0,
        description="UI poll interval and process liveness poll interval",
    )
    max_line_bytes: int = Field(
        default=1_048_576,
        gt=0,
        description="Protocol lines longer than this are skipped",
    )
    report_protocol_errors: bool = Field(
        default=True,
        description="Surface unknown types and bad payloads as UI diagnostics",
    )
    record: bool = Field(
        default=False,
        description="Write a JSONL transcript of every protocol line",
    )

    @property
    def term_grace(self) -> float:
        return self.term_grace_ms / 1000

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000


class StderrConfig(BaseModel):
    """Limits of the post-mortem stderr ring buffer."""

    model_config = ConfigDict(extra="forbid")

    max_lines: int = Field(default=500, gt=0)
    max_bytes: int = Field(default=4096, gt=0)


class KitbridgeConfig(BaseModel):
    """Top-level kitbridge.yaml configuration."""

    model_config = ConfigDict(extra="forbid")

    version: str = Field(default="1", description="Config schema version")
    runtimes: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_RUNTIMES.items()},
        description="Interpreter argv keyed by script file suffix",
    )
    state_dir: Path = Field(
        default=Path(".kitbridge"),
        description="Directory for the pid registry and transcripts",
    )
    session: SessionConfig = Field(default_factory=SessionConfig)
    stderr: StderrConfig = Field(default_factory=StderrConfig)

    @field_validator("runtimes")
    @classmethod
    def _validate_runtimes(cls, value: dict[str, list[str]]) -> dict[str, list[str]]:
        for suffix, argv in value.items():
            if not suffix.startswith("."):
                msg = f"Runtime key '{suffix}' must be a file suffix starting with '.'"
                raise ValueError(msg)
            if not argv or not all(part.strip() for part in argv):
                msg = f"Runtime for '{suffix}' must be a non-empty command"
                raise ValueError(msg)
        return value

    @property
    def transcripts_dir(self) -> Path:
        return self.state_dir / "transcripts"
