from colorama import Fore, Style
from enum import Enum
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import json

# Try to import config, fallback to defaults if not available
try:
    from k8s_recommender.config.config import Config
    config = Config()
except Exception:
    config = None

logger = logging.getLogger(__name__)

class AgentColor(Enum):
    # Pipeline control (Green Family)
    RECOMMENDER = Fore.GREEN
    RECOMMENDATION_WORKFLOW = Fore.LIGHTGREEN_EX

    # Retrieval (Blue Family)
    VECTOR_INDEX = Fore.BLUE
    CAPABILITY_STORE = Fore.LIGHTBLUE_EX
    PATTERN_STORE = Fore.LIGHTBLUE_EX

    # Schema / cluster (Cyan Family)
    SCHEMA_RESOLVER = Fore.CYAN
    CLUSTER_INTROSPECTION = Fore.LIGHTCYAN_EX
    MCP_CLIENT = Fore.LIGHTCYAN_EX

    # Reasoning (Magenta Family)
    REASONING_SERVICE = Fore.MAGENTA
    # Base/Default
    BASE = Fore.WHITE

class LogLevelColor(Enum):
    """Log level colors following traffic light semantics."""
    DEBUG = Fore.LIGHTBLACK_EX
    INFO = Fore.BLUE
    WARNING = Fore.YELLOW
    ERROR = Fore.RED
    CRITICAL = Fore.LIGHTRED_EX

class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

_LEVEL_ORDER = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}

class AgentLogger:
    """Logger for pipeline components with color encoding and structured output."""

    def __init__(self, agent_name: str = "BASE", log_to_console: Optional[bool] = None, log_to_file: Optional[bool] = None, log_level: Optional[str] = None, log_file: Optional[str] = None) -> None:
        self.agent_name = agent_name
        if config:
            self.log_to_console = log_to_console if log_to_console is not None else getattr(config, 'LOG_TO_CONSOLE', True)
            self.log_to_file = log_to_file if log_to_file is not None else getattr(config, 'LOG_TO_FILE', False)
            self.log_level = log_level if log_level is not None else getattr(config, 'LOG_LEVEL', 'INFO')
            self.log_file = log_file if log_file is not None else getattr(config, 'LOG_FILE', 'k8s_recommender.log')
        else:
            self.log_to_console = log_to_console if log_to_console is not None else True
            self.log_to_file = log_to_file if log_to_file is not None else False
            self.log_level = log_level if log_level is not None else 'INFO'
            self.log_file = log_file if log_file is not None else 'k8s_recommender.log'
        self.log_level = str(self.log_level).upper()
        self.logger = logging.getLogger(f"{__name__}.{agent_name}")
        self.logger.setLevel(self.log_level)
        # Remove all handlers to avoid duplicate logs
        self.logger.handlers = []
        self.logger.propagate = False
        formatter = logging.Formatter('%(message)s')
        if self.log_to_file:
            file_handler = logging.FileHandler(self.log_file)
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(formatter)
            self.logger.addHandler(file_handler)

    def _get_color(self, agent: str) -> str:
        """Get color for agent."""
        try:
            return AgentColor[agent].value
        except KeyError:
            return AgentColor.BASE.value

    def _get_level_color(self, level: str) -> str:
        """Get color for log level."""
        try:
            return LogLevelColor[level].value
        except KeyError:
            return Fore.WHITE

    def _enabled(self, level: str) -> bool:
        return _LEVEL_ORDER.get(level, 20) >= _LEVEL_ORDER.get(self.log_level, 20)

    def _format_log_entry(self, message: str, level: str = "INFO") -> Dict[str, Any]:
        """Format log entry."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "agent": self.agent_name,
            "message": message,
            "level": level
        }

    def _log_to_console(self, message: str, level: str = "INFO") -> None:
        """Log to console with color, if enabled."""
        if self.log_to_console and self._enabled(level):
            agent_color = self._get_color(self.agent_name)
            level_color = self._get_level_color(level)
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "+00:00"
            formatted_message = f"{level_color}[{level}]{Style.RESET_ALL} {agent_color}{self.agent_name}{Style.RESET_ALL}: [{timestamp}] {message}"
            print(formatted_message)

    def _log_to_file(self, message: str, level: str = "INFO") -> None:
        """Log to file, if enabled."""
        if self.log_to_file:
            log_method = getattr(self.logger, level.lower(), self.logger.info)
            log_method(message)

    def log(self, message: str, level: str = "INFO") -> None:
        """Log message to all configured outputs."""
        self._log_to_console(message, level)
        self._log_to_file(message, level)

    @staticmethod
    def format_log_message(message: str, level: str = "INFO") -> str:
        """Format a log message."""
        return f"[{level}] {message}"

    @classmethod
    def create_logger(cls, agent_name: str) -> 'AgentLogger':
        """Create a new logger instance."""
        return cls(agent_name)

    def log_structured(
        self,
        level: str = "INFO",
        message: str = "",
        request_id: Optional[str] = None,
        extra: Optional[dict] = None,
    ) -> None:
        """
        Log a structured message with context fields.
        If LOG_STRUCTURED_JSON is True, outputs JSON; otherwise, outputs a formatted string.
        Args:
            level: Log level (e.g., "INFO", "ERROR")
            message: Log message
            request_id: Optional recommendation request ID
            extra: Optional dict of extra fields
        """
        structured = False
        if config:
            structured = getattr(config, 'LOG_STRUCTURED_JSON', False)
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "agent_name": self.agent_name,
            "log_type": level,
            "message": message,
            "request_id": request_id,
        }
        if extra:
            log_entry.update(extra)
        if structured:
            msg = json.dumps(log_entry, default=str)
        else:
            parts = [
                message,
                f"request_id={request_id}" if request_id else "",
            ]
            if extra:
                for k, v in extra.items():
                    parts.append(f"{k}={v}")
            msg = " ".join([p for p in parts if p])
        self.log(msg, level=level)
