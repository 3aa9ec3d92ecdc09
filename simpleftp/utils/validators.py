"""Input validators for SimpleFTP.

Each validator returns an (is_valid, error_message) tuple; callers
decide whether to raise.
"""

import ipaddress
import re
from typing import Optional, Tuple


# RFC 1123 hostname: dot separated labels, no leading or trailing hyphen
HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.(?!-)[A-Za-z0-9-]{1,63}(?<!-))*$'
)

# Characters that would end or split an FTP command line
CONTROL_CHARACTERS = re.compile(r'[\r\n\x00]')

MIN_PORT = 1
MAX_PORT = 65535
MIN_TIMEOUT = 1
MAX_TIMEOUT = 600

ValidationResult = Tuple[bool, Optional[str]]


def validate_host(host: str) -> ValidationResult:
    """
    Validate a host given as an IPv4/IPv6 address or a hostname.

    Args:
        host: Host string to validate
    """
    if not host or not host.strip():
        return False, "Host is required"

    host = host.strip()
    try:
        ipaddress.ip_address(host)
        return True, None
    except ValueError:
        pass

    # Dotted numbers that are not an address are a mistyped IP, not a name
    if re.fullmatch(r'[\d.]+', host) is None and HOSTNAME_PATTERN.match(host):
        return True, None

    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_user(user: str) -> ValidationResult:
    """Validate a login name (sent verbatim in the USER command)."""
    if not user:
        return False, "User is required"
    if CONTROL_CHARACTERS.search(user):
        return False, "User must not contain line breaks or NUL characters"
    return True, None


def _as_number(value, name: str) -> Tuple[Optional[float], Optional[str]]:
    if isinstance(value, bool):
        return None, f"{name} must be a number"
    if isinstance(value, (int, float)):
        return value, None
    try:
        return int(value), None
    except (ValueError, TypeError):
        return None, f"{name} must be a number"


def validate_port(port: int) -> ValidationResult:
    """Validate a TCP port number."""
    port, error = _as_number(port, "Port")
    if error:
        return False, error
    if not MIN_PORT <= port <= MAX_PORT:
        return False, f"Port must be between {MIN_PORT} and {MAX_PORT}, got {port}"
    return True, None


def validate_timeout(timeout: int) -> ValidationResult:
    """Validate a socket timeout in seconds."""
    timeout, error = _as_number(timeout, "Timeout")
    if error:
        return False, error
    if not MIN_TIMEOUT <= timeout <= MAX_TIMEOUT:
        return False, (
            f"Timeout must be between {MIN_TIMEOUT} and {MAX_TIMEOUT} seconds, got {timeout}"
        )
    return True, None


def validate_remote_path(path: str) -> ValidationResult:
    """
    Validate a remote path.

    Remote paths are absolute and may not contain characters that
    would break the command they are sent in.
    """
    if not path or not path.strip():
        return False, "Remote path is required"
    if not path.startswith("/"):
        return False, f"Remote path must be absolute, got '{path}'"
    if CONTROL_CHARACTERS.search(path):
        return False, "Remote path must not contain line breaks or NUL characters"
    return True, None


def validate_octal(octal: str) -> ValidationResult:
    """Validate a three digit permissions octal such as "755"."""
    if not octal or len(octal) != 3:
        return False, "An octal string must have 3 characters"

    for ch in octal:
        if ch not in "01234567":
            return False, f"An octal digit must be between 0 and 7, got: {ch}"

    return True, None
