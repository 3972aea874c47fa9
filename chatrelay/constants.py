# Line protocol constants (prefixes, command keywords, fixed replies)

DEFAULT_PORT = 9000
DEFAULT_HOST = "0.0.0.0"
MAX_HANDSHAKE_ATTEMPTS = 3

# Server -> client prefixes
SYSTEM_PREFIX = "[SYSTEM] "
PM_FROM_PREFIX = "[PM from {user}] "
PM_TO_PREFIX = "[PM to {user}] "

# Sent as a bare line right before the relay closes a connection.
QUIT_SENTINEL = "QUIT"

# Client -> server command keywords (matched case-insensitively)
CMD_QUIT = "QUIT"
CMD_LIST = "LIST"
CMD_PM = "PM"
CMD_MSG = "MSG"

# Handshake replies (without the system prefix)
TXT_PROMPT_USERNAME = "Enter username:"
TXT_USERNAME_EMPTY = "Username cannot be empty."
TXT_USERNAME_TAKEN = "Username already taken."
TXT_USERNAME_INVALID = "Username contains invalid characters."
TXT_RETRY = "Enter a different username:"
TXT_DISCONNECTING = "Disconnecting."
TXT_WELCOME = "Welcome, {user}!"

# Session replies
TXT_GOODBYE = "Goodbye!"
TXT_USER_LIST = "Connected users: {users}"
TXT_PM_USAGE = "Invalid PM format. Use: PM <user> <message>"
TXT_USER_NOT_FOUND = "User '{user}' not found."

# Announcements
TXT_JOINED = "{user} has joined the chat."
TXT_LEFT = "{user} has left the chat."

# Environment overrides
ENV_HOST = "CHATRELAY_HOST"
ENV_LOG_LEVEL = "CHATRELAY_LOG_LEVEL"
ENV_LOG_FILE = "CHATRELAY_LOG_FILE"
