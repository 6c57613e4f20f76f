"""Attachments — folds plain-text file attachments into the outgoing message text.

Invariants:
    - No files → text returned unchanged
    - Each file becomes "--- 附件: <name> ---\\n<text>", parts joined by a blank line
    - Undecodable bytes are replaced, never raised

Design Decisions:
    - Text extraction is a byte-to-text step on the sending side; the server
      only ever sees one string (ADR: attachments are not a protocol feature)
"""


def decode_attachment(data: bytes, encoding: str = "utf-8") -> str:
    return data.decode(encoding, errors="replace")


def merge_attachments(text: str, files: list[tuple[str, bytes]] | None) -> str:
    if not files:
        return text
    parts = [text.strip()]
    for filename, data in files:
        parts.append(f"--- 附件: {filename} ---\n{decode_attachment(data)}")
    return "\n\n".join(parts)
