"""
Link-bearing element/attribute tables.

``TAGS[level]`` maps an element name to the set of its attributes that hold
URLs at that filter level; each level contains every pair of the previous one.
``RECURSIVE_TAGS[level]`` is the (smaller) set of pairs a site crawl follows.
"""

from typing import Dict, FrozenSet, List


TagTable = Dict[str, FrozenSet[str]]


def _merge(*tables: Dict[str, List[str]]) -> TagTable:
    merged: Dict[str, set] = {}
    for table in tables:
        for tag_name, attr_names in table.items():
            merged.setdefault(tag_name, set()).update(attr_names)
    return {tag_name: frozenset(attr_names) for tag_name, attr_names in merged.items()}


# Clickable links
_LEVEL_0 = {
    'a': ['href'],
    'area': ['href'],
}

# Media, frames and meta refreshes
_LEVEL_1 = {
    'audio': ['src'],
    'embed': ['src'],
    'frame': ['src'],
    'iframe': ['src'],
    'img': ['src', 'srcset'],
    'input': ['src'],
    'menuitem': ['icon'],
    'meta': ['content'],
    'object': ['data'],
    'source': ['src', 'srcset'],
    'track': ['src'],
    'video': ['poster', 'src'],
}

# Stylesheets, scripts and forms
_LEVEL_2 = {
    'body': ['background'],
    'form': ['action'],
    'link': ['href'],
    'script': ['src'],
}

# Everything else, including deprecated attributes
_LEVEL_3 = {
    'a': ['ping'],
    'applet': ['archive', 'code', 'codebase', 'object', 'src'],
    'area': ['ping'],
    'blockquote': ['cite'],
    'button': ['formaction'],
    'del': ['cite'],
    'frame': ['longdesc'],
    'head': ['profile'],
    'html': ['manifest'],
    'iframe': ['longdesc'],
    'img': ['longdesc'],
    'input': ['formaction'],
    'ins': ['cite'],
    'object': ['codebase'],
    'q': ['cite'],
    'table': ['background'],
    'tbody': ['background'],
    'td': ['background'],
    'tfoot': ['background'],
    'th': ['background'],
    'thead': ['background'],
    'tr': ['background'],
}

TAGS: List[TagTable] = [
    _merge(_LEVEL_0),
    _merge(_LEVEL_0, _LEVEL_1),
    _merge(_LEVEL_0, _LEVEL_1, _LEVEL_2),
    _merge(_LEVEL_0, _LEVEL_1, _LEVEL_2, _LEVEL_3),
]

MAX_FILTER_LEVEL = len(TAGS) - 1

# Documents that a site crawl may continue into
_RECURSIVE_EXTRA = {
    'frame': ['src'],
    'iframe': ['src'],
    'meta': ['content'],
}

RECURSIVE_TAGS: List[TagTable] = [
    _merge(_LEVEL_0),
    _merge(_LEVEL_0, _RECURSIVE_EXTRA),
    _merge(_LEVEL_0, _RECURSIVE_EXTRA),
    _merge(_LEVEL_0, _RECURSIVE_EXTRA),
]

# Pairs covered by the NOIMAGEINDEX robots directive
IMAGE_ATTRS: TagTable = {
    'img': frozenset({'src', 'srcset'}),
    'input': frozenset({'src'}),
    'menuitem': frozenset({'icon'}),
    'video': frozenset({'poster'}),
}


def is_link_attr(table: TagTable, tag_name: str, attr_name: str) -> bool:
    """Whether ``table`` lists ``attr_name`` as link-bearing on ``tag_name``."""
    attr_names = table.get(tag_name)
    return attr_names is not None and attr_name in attr_names
