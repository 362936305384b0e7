"""Log record types for Claude Code session JSONL data."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union


def _opt_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _opt_int(value: Any) -> Optional[int]:
    # bool is an int subclass; a JSON true is not a token count
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


@dataclass(frozen=True)
class TokenUsage:
    input_tokens: int = 0
    output_tokens: int = 0
    cache_creation_input_tokens: Optional[int] = None
    cache_read_input_tokens: Optional[int] = None

    @classmethod
    def zero(cls) -> "TokenUsage":
        return cls(0, 0, 0, 0)

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["TokenUsage"]:
        """Decode the API usage object. Returns None if the required counts are missing."""
        if not isinstance(raw, dict):
            return None
        input_tokens = _opt_int(raw.get("input_tokens"))
        output_tokens = _opt_int(raw.get("output_tokens"))
        if input_tokens is None or output_tokens is None:
            return None
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cache_creation_input_tokens=_opt_int(raw.get("cache_creation_input_tokens")),
            cache_read_input_tokens=_opt_int(raw.get("cache_read_input_tokens")),
        )

    def to_dict(self) -> dict:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "cache_creation_input_tokens": self.cache_creation_input_tokens,
            "cache_read_input_tokens": self.cache_read_input_tokens,
        }

    @property
    def cache_creation_tokens(self) -> int:
        return self.cache_creation_input_tokens or 0

    @property
    def cache_read_tokens(self) -> int:
        return self.cache_read_input_tokens or 0

    @property
    def rate_limit_tokens(self) -> int:
        """Tokens counted against the quota. Cache reads are exempt."""
        return self.input_tokens + self.output_tokens + self.cache_creation_tokens

    @property
    def cached_tokens(self) -> int:
        return self.cache_creation_tokens + self.cache_read_tokens

    @property
    def all_tokens(self) -> int:
        return self.rate_limit_tokens + self.cache_read_tokens

    @property
    def cache_efficiency(self) -> float:
        total = self.cached_tokens
        if total <= 0:
            return 0.0
        return self.cache_read_tokens / total

    @property
    def cache_efficiency_percent(self) -> float:
        return self.cache_efficiency * 100

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        if not isinstance(other, TokenUsage):
            return NotImplemented
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
            cache_creation_input_tokens=self.cache_creation_tokens + other.cache_creation_tokens,
            cache_read_input_tokens=self.cache_read_tokens + other.cache_read_tokens,
        )


@dataclass(frozen=True)
class ContentBlock:
    type: Optional[str] = None
    text: Optional[str] = None
    thinking: Optional[str] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["ContentBlock"]:
        if not isinstance(raw, dict):
            return None
        return cls(
            type=_opt_str(raw.get("type")),
            text=_opt_str(raw.get("text")),
            thinking=_opt_str(raw.get("thinking")),
        )


# str for plain prompts, list of blocks for structured assistant/user turns
LogContent = Union[str, list[ContentBlock], None]


@dataclass(frozen=True)
class LogMessage:
    role: Optional[str] = None
    model: Optional[str] = None
    id: Optional[str] = None
    content: LogContent = None
    usage: Optional[TokenUsage] = None

    @classmethod
    def from_dict(cls, raw: Any) -> Optional["LogMessage"]:
        if not isinstance(raw, dict):
            return None

        content = raw.get("content")
        if isinstance(content, str):
            parsed_content: LogContent = content
        elif isinstance(content, list):
            parsed_content = [b for b in (ContentBlock.from_dict(c) for c in content) if b is not None]
        else:
            parsed_content = None

        return cls(
            role=_opt_str(raw.get("role")),
            model=_opt_str(raw.get("model")),
            id=_opt_str(raw.get("id")),
            content=parsed_content,
            usage=TokenUsage.from_dict(raw.get("usage")),
        )

    @property
    def text_content(self) -> Optional[str]:
        if isinstance(self.content, str):
            return self.content
        if isinstance(self.content, list):
            return "\n".join(b.text for b in self.content if b.text)
        return None


@dataclass(frozen=True)
class LogEntry:
    """One line of a session log. Every field is optional."""
    type: Optional[str] = None
    timestamp: Optional[datetime] = None
    session_id: Optional[str] = None
    uuid: Optional[str] = None
    cwd: Optional[str] = None
    message: Optional[LogMessage] = None

    @property
    def usage(self) -> Optional[TokenUsage]:
        return self.message.usage if self.message else None

    @property
    def working_directory(self) -> Optional[str]:
        return self.cwd


@dataclass
class SessionEntries:
    """Entries from a single session file."""
    session_id: str
    session_file: Path
    last_modified: datetime
    entries: list[LogEntry] = field(default_factory=list)
