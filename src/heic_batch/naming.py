"""Display names for converted items."""

import re

FORBIDDEN_CHARACTERS = re.compile(r'[<>:"/\\|?*]')
FALLBACK_BASE_NAME = "image"


def sanitize_base_name(name: str) -> str:
    """Strip characters that are unsafe in file names.

    An empty result falls back to ``image`` so a name is never blank.
    """
    sanitized = FORBIDDEN_CHARACTERS.sub("", name).strip()
    return sanitized or FALLBACK_BASE_NAME


def validate_file_name(name: str, extension: str) -> str:
    """Build a safe file name from a proposed base name and an extension.

    >>> validate_file_name('My: Photo?', 'jpg')
    'My Photo.jpg'
    >>> validate_file_name('   ', 'png')
    'image.png'
    """
    return f"{sanitize_base_name(name)}.{extension}"
