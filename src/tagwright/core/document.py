"""
Document-level asset tag rewriting.

This module walks a parsed HTML document, hands every `<script>` tag that
carries pseudo-attributes to the script tag rewriter, writes the rewritten
attributes back and inserts the supplemental markup after the tag. `<link>`
and `<img>` tags marked for versioning get their `href`/`src` stamped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from tagwright.core.attributes import AttributeValue
from tagwright.core.script_tag import (
    APPEND_VERSION, DEFAULT_PREFIX, PSEUDO_ATTRIBUTES, TRUE_VALUES, RenderContext, RewriteOptions,
    ScriptTagRewriter,
)


# Tags that only support version stamping, with the attribute holding the URL
VERSIONED_URL_ATTRIBUTES = {
    'link': 'href',
    'img': 'src',
}


class AuthoredOrderFormatter(HTMLFormatter):
    """bs4's minimal formatter, minus the alphabetical attribute sort."""

    def attributes(self, tag):
        return list((tag.attrs or {}).items())


AUTHORED_ORDER = AuthoredOrderFormatter(entity_substitution=EntitySubstitution.substitute_xml)


@dataclass
class DocumentResult:
    html: str
    tags_rewritten: int = 0


class DocumentRewriter:
    def __init__(self, script_rewriter: ScriptTagRewriter, prefix: str = DEFAULT_PREFIX, parser: str = 'lxml'):
        self.logger = logging.getLogger(__name__)
        self.script_rewriter = script_rewriter
        self.prefix = prefix.lower()
        self.parser = parser

    def rewrite_html(self, html: str, context: Optional[RenderContext] = None) -> str:
        return self.rewrite(html, context).html

    def rewrite(self, html: str, context: Optional[RenderContext] = None) -> DocumentResult:
        """
        Rewrite all asset tags in a document.

        Raises the rewriter's errors unchanged; a document with a missing
        asset is not rendered at all.
        """
        context = context or RenderContext()
        soup = BeautifulSoup(html, self.parser, **self._parser_options(self.parser))
        count = 0

        for tag in list(soup.find_all('script')):
            if self._is_pseudo_tag(tag) and self._rewrite_script(tag, context):
                count += 1

        for tag in soup.find_all(list(VERSIONED_URL_ATTRIBUTES)):
            if self._rewrite_versioned_url(tag, context):
                count += 1

        self.logger.debug(f"Rewrote {count} tag(s)")
        return DocumentResult(html=soup.decode(formatter=AUTHORED_ORDER), tags_rewritten=count)

    @staticmethod
    def _parser_options(parser: str) -> dict:
        # lxml keeps the first of duplicate attributes on its own
        if parser == 'html.parser':
            return {'on_duplicate_attribute': 'ignore'}
        return {}

    def _pseudo_name(self, suffix: str) -> str:
        return f"{self.prefix}{suffix}"

    def _is_pseudo_name(self, name: str) -> bool:
        lowered = name.lower()
        return lowered.startswith(self.prefix) and lowered[len(self.prefix):] in PSEUDO_ATTRIBUTES

    def _is_pseudo_tag(self, tag) -> bool:
        return any(self._is_pseudo_name(name) for name in tag.attrs)

    def _declared(self, tag) -> List[Tuple[str, AttributeValue]]:
        declared = []
        for name, value in tag.attrs.items():
            # bs4 splits multi-valued attributes such as class
            if isinstance(value, list):
                value = ' '.join(value)
            declared.append((name, value))
        return declared

    def _rewrite_script(self, tag, context: RenderContext) -> bool:
        declared = self._declared(tag)
        options, attributes = RewriteOptions.from_attributes(declared, self.prefix)
        result = self.script_rewriter.rewrite(attributes, options, context, declared=declared)

        if not result.modified:
            # Incomplete feature group: only the pseudo-attributes go away
            tag.attrs = {name: value for name, value in declared if not self._is_pseudo_name(name)}
            return False

        if result.tag_name is not None:
            tag.attrs = {a.name: ('' if a.value is None else a.value) for a in result.attributes}
            if result.content_modified:
                tag.clear()

        anchor = tag
        if result.markup.pre:
            for node in self._parse_fragment(result.markup.pre):
                tag.insert_before(node)
        if result.markup.post:
            for node in self._parse_fragment(result.markup.post):
                anchor.insert_after(node)
                anchor = node

        if result.tag_name is None:
            tag.decompose()
        return True

    def _parse_fragment(self, markup: str) -> list:
        # html.parser keeps fragments as-is instead of wrapping them in <html><body>
        fragment = BeautifulSoup(markup, 'html.parser', **self._parser_options('html.parser'))
        return list(fragment.contents)

    def _rewrite_versioned_url(self, tag, context: RenderContext) -> bool:
        flag = self._pseudo_name(APPEND_VERSION)
        flag_name = next((name for name in tag.attrs if name.lower() == flag), None)
        if flag_name is None:
            return False
        enabled = (tag.attrs.pop(flag_name) or '').strip().lower() in TRUE_VALUES
        url_attr = VERSIONED_URL_ATTRIBUTES[tag.name]
        url = tag.get(url_attr)
        if not enabled or not url:
            return False
        url = self.script_rewriter.url_rewriter.expand(url)
        tag[url_attr] = self.script_rewriter.version_url(url, context)
        return True
