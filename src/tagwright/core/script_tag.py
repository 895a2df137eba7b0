"""
Script tag rewriting.

Turns a `<script>` tag's authored attributes plus its declarative
pseudo-attributes (source globbing, fallback sources, version stamping) into
the final tag attributes and the markup to emit after the tag. A tag whose
pseudo-attributes do not form a complete feature group is left untouched.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple

from tagwright.core.attributes import AttributeValue, TagAttributeSet
from tagwright.core.encoders import html_encode, javascript_encode
from tagwright.core.errors import RenderCancelled
from tagwright.core.globbing import GlobbingUrlBuilder
from tagwright.core.versioning import FileVersionProvider, VersionCache
from tagwright.utils.urls import UrlRewriter


SRC = 'src'
DEFAULT_PREFIX = 'asset-'

# Pseudo-attribute suffixes, appended to the configured prefix
SRC_INCLUDE = 'src-include'
SRC_EXCLUDE = 'src-exclude'
FALLBACK_SRC = 'fallback-src'
FALLBACK_SRC_INCLUDE = 'fallback-src-include'
FALLBACK_SRC_EXCLUDE = 'fallback-src-exclude'
FALLBACK_TEST = 'fallback-test'
APPEND_VERSION = 'append-version'

PSEUDO_ATTRIBUTES = (
    SRC_INCLUDE, SRC_EXCLUDE, FALLBACK_SRC, FALLBACK_SRC_INCLUDE,
    FALLBACK_SRC_EXCLUDE, FALLBACK_TEST, APPEND_VERSION,
)

_OPTION_FIELDS = {
    SRC_INCLUDE: 'src_include',
    SRC_EXCLUDE: 'src_exclude',
    FALLBACK_SRC: 'fallback_src',
    FALLBACK_SRC_INCLUDE: 'fallback_src_include',
    FALLBACK_SRC_EXCLUDE: 'fallback_src_exclude',
    FALLBACK_TEST: 'fallback_test_expression',
}

TRUE_VALUES = {'', 'true', '1', 'yes', 'on'}

MODE_APPEND_VERSION = 'append-version'
MODE_GLOBBED_SRC = 'globbed-src'
MODE_FALLBACK = 'fallback'
MODE_FALLBACK_GLOBBED = 'fallback-globbed'

# A mode applies only when every option it names is set
MODES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    (MODE_APPEND_VERSION, ('append_version',)),
    (MODE_GLOBBED_SRC, ('src_include',)),
    (MODE_FALLBACK, ('fallback_src', 'fallback_test_expression')),
    (MODE_FALLBACK_GLOBBED, ('fallback_src_include', 'fallback_test_expression')),
)


@dataclass
class RewriteOptions:
    src: Optional[str] = None
    src_include: Optional[str] = None
    src_exclude: Optional[str] = None
    fallback_src: Optional[str] = None
    fallback_src_include: Optional[str] = None
    fallback_src_exclude: Optional[str] = None
    fallback_test_expression: Optional[str] = None
    append_version: bool = False

    def modes(self) -> List[str]:
        return [mode for mode, required in MODES if all(getattr(self, name) for name in required)]

    @classmethod
    def from_attributes(cls, attributes: Iterable[Tuple[str, AttributeValue]],
                        prefix: str = DEFAULT_PREFIX) -> Tuple["RewriteOptions", TagAttributeSet]:
        """
        Split authored attributes into rewrite options and the plain HTML
        attributes left for output. `src` is bound to the options, so it is
        not part of the returned set.
        """
        options = cls()
        remaining = TagAttributeSet()
        prefix = prefix.lower()
        for name, value in attributes:
            lowered = name.lower()
            if lowered == SRC:
                if options.src is None:
                    options.src = value
                continue
            if lowered.startswith(prefix) and lowered[len(prefix):] in PSEUDO_ATTRIBUTES:
                key = lowered[len(prefix):]
                if key == APPEND_VERSION:
                    options.append_version = (value or '').strip().lower() in TRUE_VALUES
                elif getattr(options, _OPTION_FIELDS[key]) is None:
                    setattr(options, _OPTION_FIELDS[key], value)
                continue
            remaining.add(name, value)
        return options, remaining


@dataclass
class RenderContext:
    path_base: str = ""
    cancel_event: Optional[threading.Event] = None

    def check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise RenderCancelled("render cancelled")


@dataclass
class SupplementalMarkup:
    pre: str = ""
    post: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.pre and not self.post


@dataclass
class RewriteResult:
    tag_name: Optional[str]
    attributes: TagAttributeSet
    markup: SupplementalMarkup = field(default_factory=SupplementalMarkup)
    content_modified: bool = False
    modified: bool = False

    def render(self, content: str = "", html_encoder: Callable[[str], str] = html_encode) -> str:
        tag = ""
        if self.tag_name:
            attrs = ''.join(_html_attribute(a.name, a.value, html_encoder) for a in self.attributes)
            tag = f"<{self.tag_name}{attrs}>{'' if self.content_modified else content}</{self.tag_name}>"
        return f"{self.markup.pre}{tag}{self.markup.post}"


def _html_attribute(name: str, value: AttributeValue, encoder: Callable[[str], str]) -> str:
    if value is None:
        return f" {name}"
    return f' {name}="{encoder(value)}"'


def copy_authored_attribute(output: TagAttributeSet, name: str, value: AttributeValue,
                            declared: Optional[Sequence[Tuple[str, AttributeValue]]]) -> None:
    """
    Put an authored attribute back into `output` close to where it was
    written: after the nearest earlier authored attribute present in the
    output, else before the nearest later one, else at the end.
    """
    if name in output:
        return
    names = [n.lower() for n, _ in (declared or ())]
    if name.lower() not in names:
        output.add(name, value)
        return
    position = len(names) - 1 - names[::-1].index(name.lower())
    for previous in reversed(names[:position]):
        index = output.index_of(previous)
        if index != -1:
            output.insert(index + 1, name, value)
            return
    for following in names[position + 1:]:
        index = output.index_of(following)
        if index != -1:
            output.insert(index, name, value)
            return
    output.add(name, value)


class ScriptTagRewriter:
    tag_name = 'script'

    def __init__(self,
                 file_resolver,
                 url_rewriter: Optional[UrlRewriter] = None,
                 glob_expander=None,
                 html_encoder: Callable[[str], str] = html_encode,
                 javascript_encoder: Callable[[str], str] = javascript_encode,
                 cache: Optional[VersionCache] = None):
        self.logger = logging.getLogger(__name__)
        self.url_rewriter = url_rewriter or UrlRewriter()
        self.glob_expander = glob_expander or GlobbingUrlBuilder(file_resolver)
        self.versioner = FileVersionProvider(file_resolver, cache)
        self.html_encoder = html_encoder
        self.javascript_encoder = javascript_encoder

    def rewrite(self,
                attributes: TagAttributeSet,
                options: RewriteOptions,
                context: Optional[RenderContext] = None,
                declared: Optional[Sequence[Tuple[str, AttributeValue]]] = None) -> RewriteResult:
        """
        Rewrite one script tag.

        Args:
            attributes: Output attributes supplied by upstream contributors
            options: Bound pseudo-attribute values
            context: Render-wide settings (request path base, cancellation)
            declared: Authored attributes in source order, used to put `src`
                back at its written position

        Returns:
            RewriteResult; unmodified when no feature group is complete

        Raises:
            AssetNotFound: a file to version does not exist
            RenderCancelled: the context's cancel event is set
        """
        context = context or RenderContext()
        output = TagAttributeSet(attributes)
        modes = options.modes()
        if not modes:
            return RewriteResult(self.tag_name, output)

        context.check_cancelled()
        self.logger.debug(f"Rewriting <{self.tag_name}> with modes {modes}")

        # A src set by another contributor wins over the bound value
        if options.src is not None:
            copy_authored_attribute(output, SRC, options.src, declared)
        src = output.get(SRC)
        if isinstance(src, str) and src:
            src = self.url_rewriter.expand(src)
            if options.append_version:
                output.set(SRC, self.version_url(src, context))
            else:
                output.set(SRC, src)
        else:
            src = None

        tag_name: Optional[str] = self.tag_name
        content_modified = False
        post: List[str] = []

        if MODE_GLOBBED_SRC in modes:
            urls = self.glob_expander.match(context.path_base, options.src_include, options.src_exclude)
            post.append(self._build_globbed_tags(output, urls, src, options.append_version, context))
            if not src:
                # Only the globbed tags are emitted
                tag_name = None
                content_modified = True

        if MODE_FALLBACK in modes or MODE_FALLBACK_GLOBBED in modes:
            post.append(self._build_fallback_block(output, options, context))

        return RewriteResult(
            tag_name=tag_name,
            attributes=output,
            markup=SupplementalMarkup(post=''.join(post)),
            content_modified=content_modified,
            modified=True,
        )

    def version_url(self, url: str, context: RenderContext) -> str:
        context.check_cancelled()
        app_base = getattr(self.url_rewriter, 'app_base', "")
        return self.versioner.add_file_version_to_path(url, context.path_base, app_base)

    def _build_globbed_tags(self, output: TagAttributeSet, urls: Sequence[str], src: Optional[str],
                            append_version: bool, context: RenderContext) -> str:
        parts = []
        for url in urls:
            if url == src:
                continue
            if append_version:
                url = self.version_url(url, context)
            encoded_src = f' {SRC}="{self.html_encoder(url)}"'
            attrs = []
            has_src = False
            for attr in output:
                if attr.name.lower() == SRC:
                    has_src = True
                    attrs.append(encoded_src)
                else:
                    attrs.append(_html_attribute(attr.name, attr.value, self.html_encoder))
            if not has_src:
                attrs.append(encoded_src)
            parts.append(f"<{self.tag_name}{''.join(attrs)}></{self.tag_name}>")
        return ''.join(parts)

    def _fallback_urls(self, options: RewriteOptions, context: RenderContext) -> List[str]:
        urls: List[str] = []
        seen: Set[str] = set()
        candidates = []
        if options.fallback_src:
            candidates.append(self.url_rewriter.expand(options.fallback_src))
        if options.fallback_src_include:
            candidates.extend(self.glob_expander.match(
                context.path_base, options.fallback_src_include, options.fallback_src_exclude))
        for url in candidates:
            if url not in seen:
                seen.add(url)
                urls.append(url)
        return urls

    def _build_fallback_block(self, output: TagAttributeSet, options: RewriteOptions,
                              context: RenderContext) -> str:
        js = self.javascript_encoder
        tags = []
        for url in self._fallback_urls(options, context):
            if options.append_version:
                url = self.version_url(url, context)
            encoded_src = f' {SRC}=\\"{js(url)}\\"'
            attrs = []
            has_src = False
            for attr in output:
                if attr.name.lower() == SRC:
                    has_src = True
                    attrs.append(encoded_src)
                elif attr.value is None:
                    attrs.append(f" {js(attr.name)}")
                else:
                    attrs.append(f' {js(attr.name)}=\\"{js(attr.value)}\\"')
            if not has_src:
                attrs.append(encoded_src)
            tags.append(f"<{self.tag_name}{''.join(attrs)}><\\/{self.tag_name}>")
        return (
            f"\n<script>({options.fallback_test_expression}"
            f"||document.write(\"{''.join(tags)}\"));</script>"
        )
