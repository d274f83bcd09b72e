"""Shared constants for toolflow."""

USER_QUERY_KEY = "userQuery"
DEFAULT_LOCATION = "United States"
DEFAULT_EXECUTION_LIST_LIMIT = 50
DUPLICATE_RESULT_SEPARATOR = "#"
