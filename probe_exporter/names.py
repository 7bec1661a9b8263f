"""
Resource naming and tagging utilities.

Every resource created by a probe is named ``{tag}-{suffix}-{timestamp}``.
The timestamp is embedded in the name because creation times are not
reliably exposed for every kind of provider resource; the garbage collector
derives resource age from the name alone.
"""

import random
import re
import string
import time
from dataclasses import dataclass
from typing import Dict, Optional

RESOURCE_TAG = "probe-exporter"
SUFFIX_LENGTH = 8

_NAME_RE = re.compile(
    rf"^{re.escape(RESOURCE_TAG)}-(?P<suffix>[a-z0-9]{{{SUFFIX_LENGTH}}})-(?P<timestamp>\d+)$"
)


@dataclass(frozen=True)
class ParsedName:
    """Components of a resource name."""
    tag: str
    suffix: str
    created_at: int


def create_name(now: Optional[float] = None) -> str:
    """
    Generate a new resource name in format: probe-exporter-xxxxxxxx-<unix seconds>

    Args:
        now: Creation time override (unix seconds), defaults to the current time

    Returns:
        str: Unique resource name
    """
    if now is None:
        now = time.time()

    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=SUFFIX_LENGTH))

    return f"{RESOURCE_TAG}-{suffix}-{int(now)}"


def parse_name(name: str) -> Optional[ParsedName]:
    """
    Split a resource name back into its components.

    Args:
        name: Resource name

    Returns:
        ParsedName, or None if the name was not generated by create_name
    """
    if not name:
        return None

    match = _NAME_RE.match(name)
    if not match:
        return None

    return ParsedName(
        tag=RESOURCE_TAG,
        suffix=match.group("suffix"),
        created_at=int(match.group("timestamp")),
    )


def is_probe_resource(name: str) -> bool:
    """Check if a resource name carries the exporter tag."""
    return parse_name(name) is not None


def resource_age(name: str, now: Optional[float] = None) -> Optional[float]:
    """
    Compute the age of a resource from its name.

    Args:
        name: Resource name
        now: Reference time (unix seconds), defaults to the current time

    Returns:
        Age in seconds, or None if the name is not ours
    """
    parsed = parse_name(name)
    if parsed is None:
        return None

    if now is None:
        now = time.time()

    return now - parsed.created_at


def resource_tags(name: str, probe: str, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """
    Generate provider tags for a probe resource.

    Args:
        name: Resource name from create_name
        probe: Kind of probe creating the resource
        extra: Additional tags to include

    Returns:
        Dictionary of tags to apply to the resource
    """
    tags = {
        "Name": name,
        "project": RESOURCE_TAG,
        "probe": probe,
    }

    if extra:
        tags.update(extra)

    return tags


def to_tag_specification(resource_type: str, tags: Dict[str, str]) -> Dict:
    """Render tags as an EC2 TagSpecifications entry."""
    return {
        "ResourceType": resource_type,
        "Tags": [{"Key": key, "Value": value} for key, value in tags.items()],
    }
