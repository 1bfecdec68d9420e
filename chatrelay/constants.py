"""Constants and default values for chatrelay."""

from pathlib import Path

# Default model configuration (used by fallback recovery only)
DEFAULT_MODEL = "anthropic:claude-sonnet-4-5"

# Where state, browser profile and run logs live
DEFAULT_HOME = Path.home() / ".chatrelay"

# Canonical entry point of the remote conversational service
DEFAULT_ENTRY_URL = "https://chatgpt.com/"

# Request modes, in the order the service offers them
MODES = ("thinking", "thinking-extended", "pro")
DEFAULT_MODE = "thinking"

MODE_LABELS = {
    "thinking": "Thinking",
    "thinking-extended": "Thinking (extended)",
    "pro": "Pro",
}

# Menu entry labels clicked in order after opening the switcher (recovery)
MODE_OPTION_PATH = {
    "thinking": ["Thinking"],
    "thinking-extended": ["Thinking", "Extended"],
    "pro": ["Pro"],
}

# Completion polling (seconds)
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_QUIET_INTERVAL = 2.0
DEFAULT_SETTLE_DELAY = 3.0
DEFAULT_RESPONSE_TIMEOUT = 180.0

# Login wait (seconds)
DEFAULT_LOGIN_POLL_INTERVAL = 10.0
DEFAULT_LOGIN_TIMEOUT = 300.0
DEFAULT_MAX_LOGIN_CYCLES = 2

# Playwright timeouts (milliseconds)
DEFAULT_NAV_TIMEOUT_MS = 30_000
DEFAULT_ACTION_TIMEOUT_MS = 10_000

# Built-in selectors for the default interaction script
DEFAULT_LOGIN_URL_MARKERS = [
    "/auth/login",
    "auth.openai.com",
    "/login",
]

DEFAULT_INPUT_SELECTOR = "#prompt-textarea"
DEFAULT_SUBMIT_SELECTOR = '[data-testid="send-button"]'
DEFAULT_TRANSCRIPT_SELECTOR = "[data-message-author-role]"
DEFAULT_STOP_SELECTOR = '[data-testid="stop-button"]'
DEFAULT_SWITCHER_SELECTOR = '[data-testid="model-switcher-dropdown-button"]'

DEFAULT_MODE_STEPS = {
    "pro": [
        DEFAULT_SWITCHER_SELECTOR,
        '[data-testid="model-switcher-gpt-5-pro"]',
    ],
    # Best-effort locator; never confirmed against the live service
    "thinking-extended": [
        DEFAULT_SWITCHER_SELECTOR,
        '[data-testid="model-switcher-gpt-5-thinking"]',
        '[data-testid="thinking-effort-extended"]',
    ],
}

DEFAULT_UNVERIFIED_MODES = ["thinking-extended"]

# Transient text shown while the remote is still producing an answer
DEFAULT_BUSY_MARKERS = [
    "Stop generating",
    "Stop streaming",
    "Answer now",
    "Pro thinking",
    "Thinking…",
    "Reasoning…",
]

# Presentational artifacts around the substantive answer
DEFAULT_ROLE_PREFIXES = [
    "ChatGPT said:",
    "ChatGPT",
    "Assistant:",
]

DEFAULT_BUTTON_CAPTIONS = [
    "Copy",
    "Copy code",
    "Good response",
    "Bad response",
    "Read aloud",
    "Share",
    "Edit in canvas",
    "Try again",
    "Switch model",
    "More actions",
    "Sources",
]

ELAPSED_LABEL_PATTERN = (
    r"(?:Thought|Reasoned|Thinking)\s+for\s+"
    r"(?:a\s+few\s+seconds|(?:\d+\s*(?:h|m|s|hours?|minutes?|seconds?)\b\s*)+)"
)

# Selectors tried during recovery to rediscover the transcript
TRANSCRIPT_CANDIDATES = [
    "[data-message-author-role]",
    'article[data-testid^="conversation-turn"]',
    '[data-testid^="conversation-turn"]',
    '[role="article"]',
    "article",
    ".message",
]

# Elements larger than this are cut before being shown to the LLM
INVENTORY_TEXT_LIMIT = 80
INVENTORY_LLM_LIMIT = 150

# Model descriptors - Anthropic Claude models only
SUPPORTED_MODELS = {
    # Claude Sonnet 4.5 - best balance for page understanding
    "anthropic:claude-sonnet-4-5": {
        "provider": "anthropic",
        "name": "claude-sonnet-4-5-20250929",
        "max_output_tokens": 4096,
    },
    # Claude Haiku 4.5 - Fast and cost-effective
    "anthropic:claude-haiku-4-5": {
        "provider": "anthropic",
        "name": "claude-haiku-4-5-20251001",
        "max_output_tokens": 4096,
    },
    # Claude Opus 4.1 - Most capable for complex reasoning
    "anthropic:claude-opus-4-1": {
        "provider": "anthropic",
        "name": "claude-opus-4-1-20250805",
        "max_output_tokens": 4096,
    },
}
