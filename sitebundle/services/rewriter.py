from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable

from sitebundle.models import MappingEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Substitution:
    original_path: str
    published_url: str
    count: int


class ReferenceRewriter(ABC):
    @abstractmethod
    def rewrite(self, html: str, mapping: Iterable[MappingEntry]) -> tuple[str, list[Substitution]]:
        """Point every reference to a mapped path at its published URL."""
        raise NotImplementedError


class PatternReferenceRewriter(ReferenceRewriter):
    """Textual rewriting of src="...", href="..." and url(...) references.

    Only the literal original path is matched: no HTML or CSS parsing, so other
    spellings of the same file are left alone.
    """

    def patterns(self, path: str) -> list[re.Pattern]:
        escaped = re.escape(path)
        return [
            re.compile(rf"""(src\s*=\s*)(["']){escaped}\2"""),
            re.compile(rf"""(href\s*=\s*)(["']){escaped}\2"""),
            re.compile(rf"""(url\(\s*)(["']?){escaped}\2(\s*\))"""),
        ]

    def rewrite(self, html: str, mapping: Iterable[MappingEntry]) -> tuple[str, list[Substitution]]:
        substitutions: list[Substitution] = []
        for entry in mapping:
            url = entry.published_url
            total = 0
            src, href, css = self.patterns(entry.original_path)

            html, n = src.subn(lambda m: f"src={m.group(2)}{url}{m.group(2)}", html)
            total += n
            html, n = href.subn(lambda m: f"href={m.group(2)}{url}{m.group(2)}", html)
            total += n
            html, n = css.subn(lambda m: f"url({m.group(2)}{url}{m.group(2)})", html)
            total += n

            logger.debug("Replaced '%s' with '%s' (%d occurrences)", entry.original_path, url, total)
            substitutions.append(Substitution(entry.original_path, url, total))
        return html, substitutions
