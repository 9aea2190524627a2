"""
Reason codes attached to broken or excluded links, and page-level error messages.
"""

from typing import Dict, Optional


REASONS: Dict[str, str] = {
    'BLC_CUSTOM': 'Custom Exclusion',
    'BLC_EXTERNAL': 'External URL Exclusion',
    'BLC_HTML': 'HTML Exclusion',
    'BLC_INTERNAL': 'Internal URL Exclusion',
    'BLC_INVALID': 'Invalid URL',
    'BLC_KEYWORD': 'Keyword Exclusion',
    'BLC_ROBOTS': 'Robots Exclusion',
    'BLC_SAMEPAGE': 'Same-page URL Exclusion',
    'BLC_SCHEME': 'Scheme Exclusion',
    'BLC_UNKNOWN': 'Unknown Error',

    'ERRNO_EAI_AGAIN': 'Temporary DNS lookup failure',
    'ERRNO_ECONNABORTED': 'Connection aborted',
    'ERRNO_ECONNREFUSED': 'Connection refused',
    'ERRNO_ECONNRESET': 'Connection reset by peer',
    'ERRNO_EHOSTDOWN': 'Host is down',
    'ERRNO_EHOSTUNREACH': 'No route to host',
    'ERRNO_ENETDOWN': 'Network is down',
    'ERRNO_ENETRESET': 'Connection reset by network',
    'ERRNO_ENETUNREACH': 'Network unreachable',
    'ERRNO_ENOTFOUND': 'No address for hostname',
    'ERRNO_EPIPE': 'Broken pipe',
    'ERRNO_EPROTO': 'Protocol error',
    'ERRNO_ETIMEDOUT': 'Connection timed out',
    'ERRNO_SSL': 'TLS/SSL handshake failure',
}

# HTTP_<status> reasons are produced for every non-2xx status
for _status, _text in (
    (300, 'Multiple Choices'), (301, 'Moved Permanently'), (302, 'Found'),
    (303, 'See Other'), (304, 'Not Modified'), (307, 'Temporary Redirect'),
    (308, 'Permanent Redirect'), (400, 'Bad Request'), (401, 'Unauthorized'),
    (402, 'Payment Required'), (403, 'Forbidden'), (404, 'Not Found'),
    (405, 'Method Not Allowed'), (406, 'Not Acceptable'),
    (407, 'Proxy Authentication Required'), (408, 'Request Timeout'),
    (409, 'Conflict'), (410, 'Gone'), (411, 'Length Required'),
    (412, 'Precondition Failed'), (413, 'Payload Too Large'),
    (414, 'URI Too Long'), (415, 'Unsupported Media Type'),
    (416, 'Range Not Satisfiable'), (417, 'Expectation Failed'),
    (418, "I'm a teapot"), (429, 'Too Many Requests'),
    (451, 'Unavailable For Legal Reasons'), (500, 'Internal Server Error'),
    (501, 'Not Implemented'), (502, 'Bad Gateway'), (503, 'Service Unavailable'),
    (504, 'Gateway Timeout'), (505, 'HTTP Version Not Supported'),
):
    REASONS[f'HTTP_{_status}'] = _text


# Reasons that stop SiteChecker from ever following an excluded link
UNFOLLOWABLE_REASONS = frozenset({'BLC_KEYWORD', 'BLC_ROBOTS', 'BLC_SCHEME'})


HTML_RETRIEVAL = 'HTML could not be retrieved'


def expected_html(content_type: Optional[str]) -> str:
    """Message for a page whose content-type is not HTML."""
    return f'Expected type "text/html" but got "{content_type}"'


def describe(reason: Optional[str]) -> str:
    """Human-readable description of a reason code."""
    if reason is None:
        return ''
    if reason in REASONS:
        return REASONS[reason]
    if reason.startswith('HTTP_'):
        return f'HTTP status {reason[5:]}'
    return reason
