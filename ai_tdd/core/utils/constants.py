"""Constants used throughout the application."""

# Iteration loop defaults
DEFAULT_MAX_ITERATIONS = 5
DEFAULT_RETENTION_WINDOW = 2

# Timeouts (seconds)
DEFAULT_TEST_TIMEOUT = 30.0
DEFAULT_GENERATION_TIMEOUT = 60.0
DEFAULT_WATCH_INTERVAL = 0.5

# Provider defaults
DEFAULT_MODEL = "gpt-4"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 4096

# Persisted state layout, relative to the workspace root
DEFAULT_DATA_DIR = ".ai-tdd"
HISTORY_FILENAME = "test-history.json"
CONVERSATION_FILE_PREFIX = "conversation-"
