"""Utility modules."""

from applydesk.utils.parser import (
    extract_json,
    parse_match_response,
    parse_profile_response,
    parse_string_list,
)

__all__ = ["extract_json", "parse_match_response", "parse_profile_response", "parse_string_list"]
