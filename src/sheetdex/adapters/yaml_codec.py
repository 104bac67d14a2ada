import io
import re
from typing import Any

import yaml

from ..core.ports import FrontmatterCodec

_FM = re.compile(r"^\s*---\s*\n(.*?)\n---[ \t]*(?:\n|$)", re.DOTALL)


class YamlFrontmatter(FrontmatterCodec):
    def decode(self, text: str) -> tuple[dict[str, Any], str]:
        m = _FM.match(text)
        if not m:
            return {}, text
        try:
            fm = yaml.safe_load(io.StringIO(m.group(1)))
        except yaml.YAMLError:
            # Not frontmatter after all; leave it in the body
            return {}, text
        # Comment-only or scalar blocks are Markdown, e.g. a leading "# Title"
        if not isinstance(fm, dict):
            return {}, text
        return fm, text[m.end():]
