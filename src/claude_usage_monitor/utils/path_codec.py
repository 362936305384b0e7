"""Map working directories to Claude Code project log directory names."""

from pathlib import Path


def encode_path(path: str) -> str:
    """Encode a working directory the way Claude Code names its log folders.

    /home/wiz/AI/LLM → home-wiz-AI-LLM
    """
    if not path:
        return ""
    encoded = path.replace("/", "-").replace("\\", "-")
    return encoded.strip("-")


def project_dir_name(working_directory: str) -> str:
    """Directory name under the projects root for a working directory.

    /home/wiz/AI/LLM → -home-wiz-AI-LLM
    """
    return "-" + encode_path(working_directory)


def extract_project_name(working_directory: str) -> str:
    """Last path segment of a working directory, used as the display name."""
    if not working_directory:
        return ""
    return Path(working_directory.rstrip("/")).name or working_directory
