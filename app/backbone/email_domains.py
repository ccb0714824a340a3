"""
Email domain patterns used to route new users to a tenant.

A configured value is a comma-separated list of patterns, each of which may use

* ``*`` for exactly one domain label (``*.example.com`` matches
  ``dev.example.com`` but not ``example.com``), and
* ``{a,b}`` for alternatives (``comp.{com,cn}``).

Matching is case-insensitive and anchored at both ends.
"""
from __future__ import annotations

import re


def extract_domain(email: str) -> str | None:
    at = email.find("@")
    if at <= 0 or at == len(email) - 1:
        return None
    return email[at + 1 :].lower().strip()


def matches(email: str, configured_domains: str | None) -> bool:
    domain = extract_domain(email)
    if domain is None:
        return False
    return matches_domain(domain, configured_domains)


def matches_domain(domain: str, configured_domains: str | None) -> bool:
    if not configured_domains or not configured_domains.strip():
        return False
    return any(pattern_to_regex(p).match(domain) for p in split_patterns(configured_domains))


def split_patterns(configured_domains: str) -> list[str]:
    """Split on commas outside braces; patterns come back trimmed and lower-cased."""
    patterns: list[str] = []
    current: list[str] = []
    depth = 0
    for ch in configured_domains:
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        elif ch == "," and depth <= 0:
            _flush(current, patterns)
            continue
        current.append(ch)
    _flush(current, patterns)
    return patterns


def _flush(current: list[str], patterns: list[str]) -> None:
    pattern = "".join(current).strip().lower()
    if pattern:
        patterns.append(pattern)
    current.clear()


def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    if not pattern.strip():
        return re.compile(r"^$")
    parts = ["^"]
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "*":
            parts.append(r"[^.]+")
            i += 1
        elif ch == "{":
            close = pattern.find("}", i)
            if close > i:
                options = [re.escape(o.strip()) for o in pattern[i + 1 : close].split(",") if o.strip()]
                if options:
                    parts.append("(?:" + "|".join(options) + ")")
                i = close + 1
            else:
                # unclosed brace is literal
                parts.append(re.escape(ch))
                i += 1
        else:
            parts.append(re.escape(ch))
            i += 1
    parts.append("$")
    return re.compile("".join(parts), re.IGNORECASE)


def expand_pattern(pattern: str) -> list[str]:
    """Expand braces into concrete domains; wildcard patterns cannot be expanded."""
    if "*" in pattern or "{" not in pattern or "}" not in pattern:
        return [pattern]
    return _expand_braces(pattern)


def _expand_braces(pattern: str) -> list[str]:
    start = pattern.find("{")
    if start < 0:
        return [pattern]
    end = pattern.find("}", start)
    if end < 0:
        return [pattern]
    prefix, suffix = pattern[:start], pattern[end + 1 :]
    results: list[str] = []
    for option in (o.strip() for o in pattern[start + 1 : end].split(",")):
        if option:
            results.extend(_expand_braces(prefix + option + suffix))
    return results


def expand_all(configured_domains: str | None) -> list[str]:
    """Every configured pattern, brace-expanded where possible."""
    if not configured_domains:
        return []
    expanded: list[str] = []
    for pattern in split_patterns(configured_domains):
        expanded.extend(expand_pattern(pattern))
    return expanded
