"""Station-name sanitizing for CloudWatch dimension values."""

# Only the lower-case characters SIATA actually uses. Anything else
# (upper-case accents, ñ, ...) is passed through untouched.
ASCII_REPLACEMENTS = (
    ("á", "a"),
    ("é", "e"),
    ("í", "i"),
    ("ó", "o"),
    ("ú", "u"),
    ("ü", "u"),
    ("#", "No. "),
)


def ascii_name(name: str) -> str:
    """Replace known accented characters and '#' in a station name."""
    for src, dst in ASCII_REPLACEMENTS:
        name = name.replace(src, dst)
    return name
