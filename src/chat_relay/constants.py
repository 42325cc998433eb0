"""Centralized constants for the chat relay."""

# HTTP server
DEFAULT_PORT = 3001

# Completion provider
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"

# Telemetry
DEFAULT_TELEMETRY_TIMEOUT = 10.0
MAX_TELEMETRY_TIMEOUT = 60.0
DEFAULT_HOST_ID = "bamboo-chat-app"
CHAT_SOURCE = "chat-api"
TEST_SOURCE = "test-endpoint"
PLAIN_DEFAULT_PORT = 80
ENCRYPTED_DEFAULT_PORT = 443

# Shutdown grace period for in-flight telemetry (seconds)
TELEMETRY_DRAIN_TIMEOUT = 5.0
