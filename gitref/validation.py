"""Input validation for URLs, branch names, paths and config values."""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .utils import normalize_separators

HTTPS_GIT_URL = re.compile(r"^https?://[^/]+/[^/]+/[^/]+")
SSH_GIT_URL = re.compile(r"^[\w.-]+@[^:]+:[^/]+/[^/]+")
INVALID_NAME_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')
INVALID_BRANCH_CHARS = re.compile(r"[\s~^:?*\[\]\\@{}\x00-\x1f\x7f]")

MAX_PATH_LENGTH = 260
MAX_REPO_NAME_LENGTH = 255


@dataclass
class ValidationResult:
    """Outcome of a single validation check."""

    valid: bool
    message: Optional[str] = None

    def __bool__(self) -> bool:
        return self.valid


OK = ValidationResult(valid=True)


def is_git_url(value: str) -> bool:
    """Check whether a string looks like a git remote URL.

    Examples:
        >>> is_git_url("https://github.com/user/repo.git")
        True
        >>> is_git_url("git@github.com:user/repo.git")
        True
        >>> is_git_url("user/repo")
        False
    """
    value = value.strip()
    return bool(HTTPS_GIT_URL.match(value) or SSH_GIT_URL.match(value))


def validate_git_url(url: str) -> ValidationResult:
    """Validate the shape of a git URL."""
    if not url or not url.strip():
        return ValidationResult(False, "URL cannot be empty")
    if not is_git_url(url):
        return ValidationResult(
            False,
            "Invalid Git URL format. Expected HTTPS (https://...) "
            "or SSH (git@...) format",
        )
    return OK


def validate_repo_name(name: str) -> ValidationResult:
    """Validate a custom repository name."""
    if not name or not name.strip():
        return ValidationResult(False, "Repository name cannot be empty")
    if INVALID_NAME_CHARS.search(name):
        return ValidationResult(False, "Repository name contains invalid characters")
    if len(name) > MAX_REPO_NAME_LENGTH:
        return ValidationResult(
            False,
            f"Repository name is too long (max {MAX_REPO_NAME_LENGTH} characters)",
        )
    return OK


def validate_branch_name(branch: str) -> ValidationResult:
    """Validate a branch name against git's ref-name rules.

    Examples:
        >>> validate_branch_name("feature/login").valid
        True
        >>> validate_branch_name("bad..name").message
        "Branch name cannot contain '..'"
    """
    if not branch or not branch.strip():
        return ValidationResult(False, "Branch name cannot be empty")
    if branch.startswith("."):
        return ValidationResult(False, "Branch name cannot start with '.'")
    if ".." in branch:
        return ValidationResult(False, "Branch name cannot contain '..'")
    if INVALID_BRANCH_CHARS.search(branch):
        return ValidationResult(False, "Branch name contains invalid characters")
    if branch.endswith("/"):
        return ValidationResult(False, "Branch name cannot end with '/'")
    if branch.endswith(".lock"):
        return ValidationResult(False, "Branch name cannot end with '.lock'")
    return OK


def validate_path(path: str) -> ValidationResult:
    """Validate a user supplied relative target or subdirectory path."""
    if not path or not path.strip():
        return ValidationResult(False, "Path cannot be empty")
    if INVALID_NAME_CHARS.search(path):
        return ValidationResult(False, "Path contains invalid characters")
    if len(path) > MAX_PATH_LENGTH:
        return ValidationResult(
            False, f"Path is too long (max {MAX_PATH_LENGTH} characters)"
        )
    return OK


def relative_inside(root: Path, path: str) -> Optional[str]:
    """Return ``path`` relative to ``root`` with forward slashes.

    Returns None when the path resolves to ``root`` itself or outside it.

    Examples:
        >>> relative_inside(Path("/work"), "vendor/../lib")
        'lib'
        >>> relative_inside(Path("/work"), "../elsewhere") is None
        True
    """
    base = Path(root).resolve()
    absolute = (base / path).resolve()
    relative = normalize_separators(os.path.relpath(absolute, base))
    if relative in (".", "..") or relative.startswith("../"):
        return None
    return relative


def validate_positive_integer(
    value: Union[str, int],
    field_name: str = "Value",
    minimum: int = 1,
    maximum: Optional[int] = None,
) -> ValidationResult:
    """Validate that a value is an integer within bounds."""
    if isinstance(value, bool):
        return ValidationResult(False, f"{field_name} must be a number")
    try:
        number = int(value)
    except (TypeError, ValueError):
        return ValidationResult(False, f"{field_name} must be a number")
    if isinstance(value, str) and value.strip() != str(number):
        return ValidationResult(False, f"{field_name} must be an integer")
    if number < minimum:
        return ValidationResult(False, f"{field_name} must be at least {minimum}")
    if maximum is not None and number > maximum:
        return ValidationResult(False, f"{field_name} must be at most {maximum}")
    return OK
