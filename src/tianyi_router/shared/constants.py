"""
Tianyi Router Client - Gateway Endpoint Constants

This module contains the LuCI endpoint paths and client defaults used throughout the package.
All paths are relative to the gateway base URL.
"""

# Connection defaults
DEFAULT_HOST = "192.168.1.1"
DEFAULT_USERNAME = "useradmin"
DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_CONCURRENCY = 1
DEFAULT_REQUESTS_PER_SECOND = 5.0
DEFAULT_VERIFY_ATTEMPTS = 3
DEFAULT_VERIFY_DELAY = 0.5

USER_AGENT = "tianyi-router/1.0"

# Authentication
LUCI_LOGIN = "/cgi-bin/luci"
LUCI_LOGOUT = "/cgi-bin/luci/admin/logout"

# Gateway information
LUCI_GATEWAY_INFO = "/cgi-bin/luci/admin/settings/gwinfo"

# Port mapping (forwarding rules)
LUCI_PORT_MAPPING_DISPLAY = "/cgi-bin/luci/admin/settings/pmDisplay"
LUCI_PORT_MAPPING_SET = "/cgi-bin/luci/admin/settings/pmSetSingle"

# pmSetSingle operations
OP_ADD = "add"
OP_ENABLE = "enable"
OP_DISABLE = "disable"
OP_DELETE = "del"

# Form fields
FIELD_USERNAME = "username"
FIELD_PASSWORD = "psd"
FIELD_TOKEN = "token"
FIELD_CACHE_BUSTER = "_"

# Fields never written to logs
SENSITIVE_FIELDS = ("psd", "password", "token", "cookie", "set-cookie", "authorization")

# Rule table keys that are table metadata, not rules
RULE_TABLE_META_KEYS = ("mask", "lanIp", "count")
