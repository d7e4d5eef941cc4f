# imapreader/utils.py
from __future__ import annotations

from base64 import b64encode


def iutf7_encode(s: str) -> str:
    """Modified UTF-7 mailbox name encoder (RFC 3501 section 5.1.3)."""
    parts = []
    start = None
    for i, c in enumerate(s):
        if 0x20 <= ord(c) <= 0x7E:
            if start is not None:
                # end of non-ASCII section
                parts.append(_iutf7_b64encode(s[start:i]))
                start = None
            parts.append("&-" if c == "&" else c)
        elif start is None:
            start = i
    if start is not None:
        parts.append(_iutf7_b64encode(s[start:]))
    return "".join(parts)


def _iutf7_b64encode(s: str) -> str:
    b64 = b64encode(s.encode("utf-16-be"), b"+,").decode("ascii")
    return "&" + b64.rstrip("=") + "-"


def format_mailbox_arg(mailbox: str) -> str:
    """Mailbox name as a SELECT/EXAMINE argument: UTF-7 encoded and quoted."""
    if mailbox.upper() == "INBOX":
        return "INBOX"
    encoded = iutf7_encode(mailbox)
    escaped = encoded.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def short(data: object, limit: int = 200) -> str:
    """Server response data for error messages, decoded and truncated."""
    if isinstance(data, (list, tuple)):
        s = " ".join(short(d, limit) for d in data if d is not None)
    elif isinstance(data, bytes):
        s = data.decode("utf-8", errors="replace")
    else:
        s = str(data)
    return s if len(s) <= limit else s[:limit] + "..."
