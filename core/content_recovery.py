"""
Content recovery for post/page creation: when title or content is missing (or still a placeholder),
pull them from the conversation.

Message search order, first hit wins: a message marked for the content type ("blog-post" or "page"),
the previous assistant message, the latest assistant message. extract_title and extract_content
are pure functions over text so they can be tested on their own.
"""

import re
from typing import Any, Dict, Optional, Tuple

from loguru import logger

CONTENT_ACTIONS = ("create_post", "create_page")

PLACEHOLDER_TITLES = ("New Post", "New Blog Post", "New Page")
PLACEHOLDER_CONTENT = "This is a draft post created by MemberPress AI Assistant."
DEFAULT_STATUS = "draft"

_TITLE_LABEL_RE = re.compile(r"(?:#+\s*Title\b:?\s*|\bTitle:\s*)([^\n]+)", re.IGNORECASE)
_HEADING_RE = re.compile(r"^#+\s*([^\n]+)", re.MULTILINE)
_CONTENT_SECTION_RE = re.compile(r"(?:#+\s*Content:?|Content:)[\r\n]+([\s\S]+?)(?:$|#+\s|```json)", re.IGNORECASE)
_CODE_BLOCK_RE = re.compile(r"```.*?```", re.DOTALL)
_HEADING_MARKER_RE = re.compile(r"^#+\s*", re.MULTILINE)
_LABEL_RE = re.compile(r"(?:Title:|Content:)\s*", re.IGNORECASE)


def content_type_for(action: str) -> str:
    return "page" if action == "create_page" else "blog-post"


def default_title_for(action: str) -> str:
    return "New Page" if action == "create_page" else "New Post"


def extract_title(text: str) -> Optional[str]:
    """Title from an explicit "Title:" label (optionally after a heading marker), else the first heading line."""
    if not text:
        return None
    for pattern in (_TITLE_LABEL_RE, _HEADING_RE):
        m = pattern.search(text)
        if m:
            title = m.group(1).strip()
            if title:
                return title
    return None


def extract_content(text: str) -> Optional[str]:
    """
    Body from a "Content:" section (up to the next heading, end of text, or a ```json fence);
    otherwise the whole text without code blocks, heading markers and Title:/Content: labels.
    """
    if not text:
        return None
    m = _CONTENT_SECTION_RE.search(text)
    if m:
        body = m.group(1).strip()
        if body:
            return body
    body = _CODE_BLOCK_RE.sub("", text)
    body = _HEADING_MARKER_RE.sub("", body)
    body = _LABEL_RE.sub("", body)
    body = body.strip()
    return body or None


def _is_missing(value: Any, placeholders: Tuple[str, ...]) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == "" or value.strip() in placeholders
    return False


def needs_recovery(action: str, params: Dict[str, Any]) -> bool:
    if action not in CONTENT_ACTIONS:
        return False
    return _is_missing(params.get("title"), PLACEHOLDER_TITLES) or _is_missing(params.get("content"), (PLACEHOLDER_CONTENT,))


def find_source_message(conversation: Any, content_type: str):
    """Return (message, source_label) or (None, None)."""
    if conversation is None:
        return None, None
    lookups = (
        ("marker", lambda: conversation.find_message_with_marker(content_type)),
        ("previous_assistant", conversation.previous_assistant_message),
        ("latest_assistant", conversation.latest_assistant_message),
    )
    for label, lookup in lookups:
        msg = lookup()
        if msg is not None and (getattr(msg, "content", "") or "").strip():
            return msg, label
    return None, None


def recover_content_parameters(action: str, params: Dict[str, Any], conversation: Any = None) -> Dict[str, Any]:
    """
    Return a copy of params with title and content filled in and status defaulted to draft.
    Never fails for lack of content: placeholders are used when nothing can be extracted.
    Params for actions outside post/page creation are returned unchanged.
    """
    if action not in CONTENT_ACTIONS:
        return params
    result = dict(params)
    title_missing = _is_missing(result.get("title"), PLACEHOLDER_TITLES)
    content_missing = _is_missing(result.get("content"), (PLACEHOLDER_CONTENT,))

    if title_missing or content_missing:
        msg, source = find_source_message(conversation, content_type_for(action))
        text = msg.content if msg is not None else ""
        if msg is not None:
            logger.debug("Content recovery: using {} message ({} chars) for {}", source, len(text), action)
        else:
            logger.debug("Content recovery: no message found for {}; using placeholders", action)
        if title_missing:
            result["title"] = extract_title(text) or default_title_for(action)
        if content_missing:
            result["content"] = extract_content(text) or PLACEHOLDER_CONTENT
        logger.debug("Content recovery: title={!r}, content length {}", result["title"], len(result["content"]))

    if _is_missing(result.get("status"), ()):
        result["status"] = DEFAULT_STATUS
    return result
