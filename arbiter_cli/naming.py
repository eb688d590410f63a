"""Turning contract names into valid Rust module names."""

from __future__ import annotations

# Words that cannot be parsed as a plain Rust identifier.
_RUST_KEYWORDS = frozenset(
    {
        "_", "abstract", "as", "async", "await", "become", "box", "break",
        "const", "continue", "crate", "do", "dyn", "else", "enum", "extern",
        "false", "final", "fn", "for", "if", "impl", "in", "let", "loop",
        "macro", "match", "mod", "move", "mut", "override", "priv", "pub",
        "ref", "return", "Self", "self", "static", "struct", "super", "trait",
        "true", "try", "type", "typeof", "unsafe", "unsized", "use",
        "virtual", "where", "while", "yield",
    }
)


def _is_separator(char: str) -> bool:
    return not char.isalnum()


def _counts_as_upper(char: str) -> bool:
    # Digits and non-ASCII characters are unchanged by ASCII upper-casing,
    # so they count as upper case here.
    return not char.isascii() or char == char.upper()


def _is_lower(char: str | None) -> bool:
    return char is not None and char.islower()


def to_snake_case(name: str) -> str:
    """Convert a name to snake_case, splitting at case changes."""
    trimmed = name.rstrip()
    end = len(trimmed)
    while end and _is_separator(trimmed[end - 1]):
        end -= 1
    trimmed = trimmed[:end]

    parts: list[str] = []
    first = True
    for index, char in enumerate(trimmed):
        if _is_separator(char):
            if not first:
                first = True
                parts.append("_")
            continue
        following = name[index + 1] if index + 1 < len(name) else None
        preceding = name[index - 1] if index > 0 else None
        if (
            not first
            and _counts_as_upper(char)
            and (_is_lower(following) or _is_lower(preceding))
        ):
            parts.append("_")
        first = False
        parts.append(char.lower())
    return "".join(parts)


def safe_identifier_name(name: str) -> str:
    """Prefix an underscore if the name starts with a numeric character."""
    if name[:1].isnumeric():
        return f"_{name}"
    return name


def _parses_as_ident(name: str) -> bool:
    return name.isidentifier() and name not in _RUST_KEYWORDS


def safe_ident(name: str) -> str:
    """Return the name, with a trailing underscore if it is a reserved word.

    Raises ValueError if even the underscored form is not an identifier.
    """
    if _parses_as_ident(name):
        return name
    candidate = f"{name}_"
    if not candidate.isidentifier():
        raise ValueError(f"{candidate!r} is not a valid identifier")
    return candidate


def safe_snake_case(name: str) -> str:
    """snake_case a name while respecting identifier rules."""
    return safe_identifier_name(to_snake_case(name))


def safe_module_name(name: str) -> str:
    """Convert a contract name into a valid module name."""
    return safe_ident(safe_snake_case(name))