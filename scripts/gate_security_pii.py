#!/usr/bin/env python3
"""Security & PII gate for runtime code.

Fails if:
- print( found in runtime code (src/**)
- A logger call mentions chat content or contact details without redaction

Usage:
    python scripts/gate_security_pii.py [src_dir]
"""

import re
import sys
from pathlib import Path

# Names that carry user text or contact details
SENSITIVE_KEYWORDS = (
    "message",
    "history",
    "content",
    "email",
    "phone",
    "body",
    "request.json",
    "state.to_dict",
)

PRINT_PATTERN = re.compile(r"\bprint\s*\(")

LOGGER_CALL_PATTERN = re.compile(r"logger\.(debug|info|warning|error|critical|exception)\s*\(")

# Literal log message, e.g. logger.info("turn handled", ...)
LOG_LITERAL_PATTERN = re.compile(r"logger\.\w+\s*\(\s*(\"[^\"]*\"|'[^']*')")

REDACTION_PATTERNS = (
    "safe_log_context",
    "redact_value",
    "redact_string",
    "redact_state",
)


def check_file(filepath: Path) -> list[str]:
    """Check a single file for violations. Returns list of error messages."""
    try:
        content = filepath.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        return []

    errors = []
    for lineno, line in enumerate(content.splitlines(), start=1):
        code = line.split("#", 1)[0]
        if not code.strip():
            continue

        if PRINT_PATTERN.search(code):
            errors.append(f"{filepath}:{lineno}: print() not allowed in runtime code")

        if not LOGGER_CALL_PATTERN.search(code):
            continue

        # Keywords inside the literal log message itself are fine
        checked = LOG_LITERAL_PATTERN.sub("logger.call(", code).lower()
        if any(rp in code for rp in REDACTION_PATTERNS):
            continue
        for keyword in SENSITIVE_KEYWORDS:
            if keyword in checked:
                errors.append(
                    f"{filepath}:{lineno}: logger call with '{keyword}' "
                    "must use redaction (safe_log_context/redact_value)"
                )

    return errors


def find_src_dir(argv: list[str]) -> Path | None:
    if len(argv) > 1:
        candidate = Path(argv[1])
        return candidate if candidate.exists() else None
    for candidate in (Path("src"), Path(__file__).resolve().parent.parent / "src"):
        if candidate.exists():
            return candidate
    return None


def main(argv: list[str] | None = None) -> int:
    """Run the gate on the src directory."""
    src_dir = find_src_dir(sys.argv if argv is None else argv)
    if src_dir is None:
        sys.stderr.write("Error: src directory not found\n")
        return 1

    all_errors: list[str] = []
    for pyfile in sorted(src_dir.rglob("*.py")):
        all_errors.extend(check_file(pyfile))

    if all_errors:
        sys.stderr.write("PII gate FAILED - violations found:\n")
        for err in all_errors:
            sys.stderr.write(f"  {err}\n")
        return 1

    sys.stdout.write("PII gate PASSED - no violations found\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
