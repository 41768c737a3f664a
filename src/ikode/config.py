"""
Configuration for the agent system.

All configuration is loaded from environment variables, so the same binary
works against vLLM, Ollama, OpenAI or any other OpenAI-compatible backend
without hardcoding any specific values. Command-line flags override what
is loaded here.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_READ_LIMIT = 2000


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class LLMConfig:
    """Configuration for the LLM client."""
    base_url: str
    api_key: str
    model: str
    temperature: float = 0.7
    max_tokens: int = 4096
    prompt_cache: bool = False
    timeout: float = 180.0

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Load configuration from environment variables."""
        return cls(
            base_url=os.getenv("LLM_BASE_URL", "http://localhost:8000/v1"),
            api_key=os.getenv("LLM_API_KEY", ""),
            model=os.getenv("LLM_MODEL", "gpt-4o"),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4096")),
            prompt_cache=_env_bool("LLM_PROMPT_CACHE"),
            timeout=float(os.getenv("LLM_TIMEOUT", "180")),
        )


@dataclass(frozen=True)
class HistoryPolicy:
    """
    Which part of the conversation is sent to the model.

    max_messages caps the number of transmitted messages (0 means
    unlimited). prefix_keep is the count of earliest non-system messages
    that are always retained, so the start of the prompt stays byte-identical
    across turns and provider-side prompt caching keeps hitting.

    The policy never changes the stored conversation, only the view of it.
    """
    max_messages: int = 80
    prefix_keep: int = 4

    def __post_init__(self) -> None:
        if self.max_messages < 0:
            raise ValueError("max_messages must be >= 0")
        if self.prefix_keep < 0:
            raise ValueError("prefix_keep must be >= 0")

    @classmethod
    def from_env(cls) -> "HistoryPolicy":
        """Load configuration from environment variables."""
        return cls(
            max_messages=int(os.getenv("HISTORY_MAX_MESSAGES", "80")),
            prefix_keep=int(os.getenv("HISTORY_PREFIX_KEEP", "4")),
        )

    @property
    def unlimited(self) -> bool:
        return self.max_messages == 0


@dataclass
class ToolConfig:
    """
    Configuration for tool execution.

    brave disables the interactive confirmation asked before every
    mutating tool (edit, create, shell). command_timeout of 0 lets shell
    commands run without a time limit.
    """
    brave: bool = False
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    read_default_limit: int = DEFAULT_READ_LIMIT
    command_timeout: float = 300.0

    @classmethod
    def from_env(cls) -> "ToolConfig":
        """Load configuration from environment variables."""
        return cls(
            brave=_env_bool("AGENT_BRAVE"),
            max_file_size=int(os.getenv("AGENT_MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE))),
            read_default_limit=int(os.getenv("AGENT_READ_LIMIT", str(DEFAULT_READ_LIMIT))),
            command_timeout=float(os.getenv("AGENT_COMMAND_TIMEOUT", "300")),
        )


@dataclass
class LoopConfig:
    """
    Configuration for the agent loop.

    max_steps bounds the number of model requests in one user turn.
    0 means the loop runs until the model stops asking for tools.
    """
    max_steps: int = 0

    @classmethod
    def from_env(cls) -> "LoopConfig":
        """Load configuration from environment variables."""
        return cls(
            max_steps=int(os.getenv("AGENT_MAX_STEPS", "0")),
        )


@dataclass
class AgentConfig:
    """Combined configuration for the entire agent system."""
    llm: LLMConfig
    history: HistoryPolicy = field(default_factory=HistoryPolicy)
    tools: ToolConfig = field(default_factory=ToolConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)
    working_directory: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_env(cls) -> "AgentConfig":
        """Load all configuration from environment variables."""
        return cls(
            llm=LLMConfig.from_env(),
            history=HistoryPolicy.from_env(),
            tools=ToolConfig.from_env(),
            loop=LoopConfig.from_env(),
            working_directory=Path.cwd(),
        )
