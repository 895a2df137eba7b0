#!/usr/bin/env python3
"""
Focused tests for document rewriting without touching the filesystem.
"""

import sys
import threading
from pathlib import Path

import pytest

# Add the src directory to the path
src_path = Path(__file__).parent / "src"
sys.path.insert(0, str(src_path))

from tagwright.core.document import DocumentRewriter
from tagwright.core.errors import AssetNotFound, RenderCancelled
from tagwright.core.script_tag import RenderContext, ScriptTagRewriter
from tagwright.core.versioning import VersionCache

from fakes import HELLO_BYTES, HELLO_HASH, InMemoryResolver


WEB_ROOT = {
    'site.js': HELLO_BYTES,
    'lib/jquery.js': HELLO_BYTES,
    'lib/jquery.min.js': HELLO_BYTES,
    'css/site.css': HELLO_BYTES,
    'img/logo.png': HELLO_BYTES,
}


def make_document_rewriter(files=None, prefix='asset-', parser='lxml'):
    resolver = InMemoryResolver(WEB_ROOT if files is None else files)
    return DocumentRewriter(ScriptTagRewriter(resolver, cache=VersionCache()), prefix=prefix, parser=parser)


def test_html_rewrite_basic():
    html = '''<html><head>
    <script type="text/javascript" src="/site.js" defer asset-append-version="true"></script>
    <link rel="stylesheet" href="~/css/site.css" asset-append-version>
    </head><body>
    <img src="/img/logo.png" asset-append-version="true">
    <script src="/plain.js"></script>
    </body></html>'''

    result = make_document_rewriter().rewrite(html)

    assert f'<script type="text/javascript" src="/site.js?v={HELLO_HASH}" defer=""></script>' in result.html
    assert f'href="/css/site.css?v={HELLO_HASH}"' in result.html
    assert f'src="/img/logo.png?v={HELLO_HASH}"' in result.html
    assert '<script src="/plain.js"></script>' in result.html
    assert 'asset-' not in result.html
    assert result.tags_rewritten == 3


def test_serialized_attributes_keep_authored_order():
    html = ('<html><head>'
            '<script data-extra="something" src="/blank.js" data-more="else" '
            'asset-fallback-src="~/blank.js" asset-fallback-test="isavailable()"></script>'
            '<link rel="stylesheet" href="/css/site.css" media="all">'
            '</head></html>')

    rewritten = make_document_rewriter().rewrite_html(html)

    assert '<script data-extra="something" src="/blank.js" data-more="else"></script>' in rewritten
    assert '<link rel="stylesheet" href="/css/site.css" media="all"' in rewritten


@pytest.mark.parametrize('parser', ['lxml', 'html.parser'])
def test_duplicate_attributes_keep_first_value(parser):
    html = ('<html><head><script data-extra="first" src="/site.js" data-extra="second" '
            'asset-append-version></script></head></html>')

    rewritten = make_document_rewriter(parser=parser).rewrite_html(html)

    assert f'<script data-extra="first" src="/site.js?v={HELLO_HASH}"></script>' in rewritten
    assert 'second' not in rewritten


def test_globbed_tags_follow_the_script():
    html = '<html><head><script src="/site.js" asset-src-include="**/*.js" asset-src-exclude="**/*.min.js"></script></head></html>'

    rewritten = make_document_rewriter().rewrite_html(html)

    assert '<script src="/site.js"></script><script src="/lib/jquery.js"></script>' in rewritten
    assert 'jquery.min.js' not in rewritten
    assert rewritten.count('src="/site.js"') == 1


def test_globbed_tags_replace_script_without_src():
    html = '<html><head><script asset-src-include="lib/*.js">console.log("inline")</script></head></html>'

    result = make_document_rewriter().rewrite(html)

    assert 'console.log' not in result.html
    assert result.html.count('<script') == 2
    assert '<script src="/lib/jquery.js"></script>' in result.html
    assert '<script src="/lib/jquery.min.js"></script>' in result.html


def test_fallback_block_inserted_after_script():
    html = ('<html><head><script src="https://cdn.example.com/jquery.js" '
            'asset-fallback-src="~/lib/jquery.js" asset-fallback-test="window.jQuery"></script></head></html>')

    rewritten = make_document_rewriter().rewrite_html(html)

    assert '<script src="https://cdn.example.com/jquery.js"></script>' in rewritten
    assert ('<script>(window.jQuery||document.write("<script src=\\"/lib/jquery.js\\"><\\/script>"));</script>'
            in rewritten)
    assert rewritten.index('cdn.example.com') < rewritten.index('window.jQuery')


def test_incomplete_fallback_leaves_script_alone():
    html = '<html><head><script src="/site.js" asset-fallback-test="window.jQuery"></script></head></html>'

    result = make_document_rewriter().rewrite(html)

    assert 'document.write' not in result.html
    assert '<script src="/site.js"></script>' in result.html


def test_custom_prefix():
    html = '<html><head><script src="/site.js" tw-append-version="true" asset-append-version="true"></script></head></html>'

    rewritten = make_document_rewriter(prefix='tw-').rewrite_html(html)

    assert f'src="/site.js?v={HELLO_HASH}"' in rewritten
    assert 'tw-append-version' not in rewritten
    assert 'asset-append-version="true"' in rewritten


def test_disabled_append_version_only_drops_the_flag():
    html = '<html><head><link rel="stylesheet" href="/css/site.css" asset-append-version="false"></head></html>'

    result = make_document_rewriter().rewrite(html)

    assert 'href="/css/site.css"' in result.html
    assert '?v=' not in result.html
    assert result.tags_rewritten == 0


def test_missing_asset_fails_the_document():
    html = '<html><head><script src="/missing.js" asset-append-version="true"></script></head></html>'

    with pytest.raises(AssetNotFound):
        make_document_rewriter().rewrite(html)


def test_cancelled_render_stops():
    cancel = threading.Event()
    cancel.set()
    html = '<html><head><script src="/site.js" asset-append-version="true"></script></head></html>'

    with pytest.raises(RenderCancelled):
        make_document_rewriter().rewrite(html, RenderContext(cancel_event=cancel))


if __name__ == "__main__":
    sys.exit(pytest.main([__file__, "-v"]))
