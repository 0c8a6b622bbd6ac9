"""File-extension based language detection.

Labels are human-readable because they end up in the model prompt
(``---FILE 1: src/app.tsx (TypeScript (React))---``).
"""

from __future__ import annotations

UNKNOWN_LANGUAGE = "Unknown"

EXTENSION_TO_LANGUAGE: dict[str, str] = {
    "py": "Python",
    "pyi": "Python",
    "js": "JavaScript",
    "mjs": "JavaScript",
    "cjs": "JavaScript",
    "jsx": "JavaScript (React)",
    "ts": "TypeScript",
    "tsx": "TypeScript (React)",
    "java": "Java",
    "kt": "Kotlin",
    "kts": "Kotlin",
    "scala": "Scala",
    "rb": "Ruby",
    "php": "PHP",
    "go": "Go",
    "rs": "Rust",
    "cs": "C#",
    "cpp": "C++",
    "cc": "C++",
    "cxx": "C++",
    "hpp": "C++",
    "c": "C",
    "h": "C",
    "swift": "Swift",
    "dart": "Dart",
    "lua": "Lua",
    "ex": "Elixir",
    "exs": "Elixir",
    "sh": "Shell",
    "bash": "Shell",
    "zsh": "Shell",
    "sql": "SQL",
    "yml": "YAML",
    "yaml": "YAML",
    "json": "JSON",
    "toml": "TOML",
    "xml": "XML",
    "md": "Markdown",
    "tf": "Terraform",
    "proto": "Protocol Buffers",
    "html": "HTML",
    "css": "CSS",
    "scss": "SCSS",
    "sass": "Sass",
    "less": "Less",
    "vue": "Vue",
    "svelte": "Svelte",
}

# Well-known files that carry no extension.
FILENAME_TO_LANGUAGE: dict[str, str] = {
    "dockerfile": "Dockerfile",
    "makefile": "Makefile",
    "jenkinsfile": "Groovy",
}


def detect_language(path: str) -> str:
    """Return the display language for ``path``, or ``"Unknown"``."""
    filename = path.rsplit("/", maxsplit=1)[-1].lower()

    if filename in FILENAME_TO_LANGUAGE:
        return FILENAME_TO_LANGUAGE[filename]

    if "." not in filename:
        return UNKNOWN_LANGUAGE

    extension = filename.rsplit(".", maxsplit=1)[-1]
    return EXTENSION_TO_LANGUAGE.get(extension, UNKNOWN_LANGUAGE)
