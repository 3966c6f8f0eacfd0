import re


def redact_secrets(text: str) -> str:
    """Redact common secret patterns from logs and error strings."""
    if not isinstance(text, str):
        return text

    redacted = text

    # Query/form params like auth_key=, api_key=, key=, token=, secret=
    redacted = re.sub(r"(?i)(auth[_-]?key|api[_-]?key|key|token|secret)=([^&\s]+)", r"\1=***REDACTED***", redacted)

    # Authorization: DeepL-Auth-Key <key> / Bearer <token>
    redacted = re.sub(r"(?i)(DeepL-Auth-Key|Bearer)\s+[A-Za-z0-9:._\-]+", r"\1 ***REDACTED***", redacted)

    return redacted
