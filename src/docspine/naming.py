"""Name helpers for collection and foreign-key defaults."""

from __future__ import annotations

import re

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def underscore(name: str) -> str:
    """``BlogPost`` → ``blog_post``; ``HTTPRequest`` → ``http_request``."""
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def pluralize(word: str) -> str:
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    return word + "s"


def collection_name(class_name: str) -> str:
    """``BlogPost`` → ``blog_posts``."""
    return pluralize(underscore(class_name))


def camelize(name: str) -> str:
    """``blog_post`` → ``BlogPost``."""
    return "".join(part[:1].upper() + part[1:] for part in name.split("_") if part)


def foreign_key(class_name: str) -> str:
    """``BlogPost`` → ``blog_post_id``."""
    return f"{underscore(class_name)}_id"


__all__ = ["underscore", "camelize", "pluralize", "collection_name", "foreign_key"]
