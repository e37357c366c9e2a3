import re
from typing import List

MENTION_RE = re.compile(r"@([a-zA-Z0-9_]+)")


def extract_mentions(text: str) -> List[str]:
    if not text:
        return []
    return MENTION_RE.findall(text)
