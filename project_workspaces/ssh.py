"""SSH helpers shared by config validation and remote settings writes."""

REMOTE_AUTHORITY_PREFIX = "ssh-remote+"


def parse_remote_authority(remote_authority: str) -> str:
    """Return the SSH target (``user@host``) of a VS Code Remote-SSH authority.

    Args:
        remote_authority: Authority string, e.g. ``ssh-remote+user@host``

    Returns:
        The SSH target

    Raises:
        ValueError: If the authority is malformed
    """
    if not remote_authority.startswith(REMOTE_AUTHORITY_PREFIX):
        raise ValueError(f"SSH remote authority must start with '{REMOTE_AUTHORITY_PREFIX}'")
    if any(ch.isspace() for ch in remote_authority):
        raise ValueError("SSH remote authority must not contain whitespace")

    target = remote_authority[len(REMOTE_AUTHORITY_PREFIX):]
    if not target:
        raise ValueError("SSH remote authority is missing host (expected ssh-remote+user@host)")
    if target.startswith("-"):
        raise ValueError("SSH remote authority must not start with '-'")
    return target


def shell_escape(value: str) -> str:
    """Single-quote a value for a remote shell command."""
    escaped = value.replace("'", "'\\''")
    return f"'{escaped}'"
