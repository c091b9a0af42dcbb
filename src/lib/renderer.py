"""
HTML renderer for streammark tokens

Renders one top-level token at a time into a RenderNode. For each token the
renderer is chosen in this order:

    1. the renderer of an extension named after the token type
    2. a caller override from SessionConfig.renderer
    3. the built-in renderer
    4. the escaped raw source

A failing extension or override is reported on the session error channel and
the token falls back to its escaped raw source.
"""

import html
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

import nh3
from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from ..config import appsettings
from ..models.render import RenderNode
from ..models.session import RenderOptions
from ..models.tokens import Token, TokenKind
from .detector import IncompleteConstruct, IncompleteConstructDetector
from .extensions import ExtensionError, ExtensionRegistry
from .log import LOG, warn


RE_TAG_ATTRIBUTE = re.compile(
    r'([A-Za-z_:][\w:.-]*)(?:\s*=\s*(?:"([^"]*)"|\'([^\']*)\'|([^\s"\'=<>`]+)))?'
)
RE_OPEN_TAG = re.compile(r'^\s*<([A-Za-z][A-Za-z0-9-]*)([^>]*)>', re.DOTALL)
RE_URL_SCHEME = re.compile(r'^([A-Za-z][A-Za-z0-9+.-]*):')
RE_URL_IGNORED = re.compile(r'[\x00-\x20\x7f]')
RE_TAG_NAME = re.compile(r'^[A-Za-z][A-Za-z0-9-]*$')

# Allowed on every tag kept by the sanitizer
COMMON_ATTRIBUTES = frozenset({'class', 'id', 'title', 'lang', 'dir'})
EXTRA_ATTRIBUTES = {
    'a': {'target', 'rel'},
    'input': {'type', 'checked', 'disabled'},
    'span': {'style'},
}


def escape(text: str) -> str:
    return html.escape(text, quote=True)


def tagAttributes_parse(source: str) -> Dict[str, str]:
    """Attributes of the first opening tag in `source`"""
    match = RE_OPEN_TAG.match(source)
    if not match:
        return {}
    attributes = {}
    for attr in RE_TAG_ATTRIBUTE.finditer(match.group(2).rstrip('/')):
        value = next((group for group in attr.groups()[1:] if group is not None), '')
        attributes[attr.group(1)] = value
    return attributes


def tagInner_get(source: str, tag: str) -> str:
    """Content between the opening tag and its close tag (or the end)"""
    match = RE_OPEN_TAG.match(source)
    if not match:
        return source
    inner = source[match.end():]
    closer = re.search(r'</' + re.escape(tag) + r'\s*>\s*$', inner, re.IGNORECASE)
    return inner[:closer.start()] if closer else inner


def rawHtml_has(token: Token) -> bool:
    """True when raw HTML from the source appears anywhere inside `token`"""
    return any(node.type == TokenKind.HTML for node in token.walk())


class HtmlRenderer:
    """
    Token to HTML renderer

    Attributes:
        has_next_chunk: Stream still live; drives code/custom-tag stream_status
        calls: Number of top-level render invocations (cache diagnostics)
    """

    def __init__(self,
                 options: Optional[RenderOptions] = None,
                 registry: Optional[ExtensionRegistry] = None,
                 detector: Optional[IncompleteConstructDetector] = None,
                 overrides: Optional[Dict[str, Callable[..., str]]] = None) -> None:
        self.options = options or RenderOptions()
        self.registry = registry
        self.detector = detector or IncompleteConstructDetector()
        self.overrides = dict(overrides or {})
        self.has_next_chunk = False
        self.calls = 0
        self._placeholders: List[str] = []
        self._components: List[Dict[str, Any]] = []
        self._current: Optional[Token] = None
        self.sanitizer = self.sanitizer_build()

        self.builtins: Dict[str, Callable[[Token], str]] = {
            TokenKind.SPACE: lambda token: '',
            TokenKind.PARAGRAPH: self.paragraph_render,
            TokenKind.HEADING: self.heading_render,
            TokenKind.CODE: self.code_render,
            TokenKind.BLOCKQUOTE: self.blockquote_render,
            TokenKind.LIST: self.list_render,
            TokenKind.LIST_ITEM: self.listItem_render,
            TokenKind.TABLE: self.table_render,
            TokenKind.TABLE_ROW: self.tableRow_render,
            TokenKind.TABLE_CELL: self.tableCell_render,
            TokenKind.HTML: self.html_render,
            TokenKind.HR: lambda token: '<hr>\n',
            TokenKind.FOOTNOTE: self.footnote_render,
            TokenKind.TEXT: lambda token: escape(token.text),
            TokenKind.ESCAPE: lambda token: escape(token.text),
            TokenKind.CODESPAN: lambda token: f'<code>{escape(token.text)}</code>',
            TokenKind.EMPHASIS: lambda token: f'<em>{self.inline_render(token.children)}</em>',
            TokenKind.STRONG: lambda token: f'<strong>{self.inline_render(token.children)}</strong>',
            TokenKind.DEL: lambda token: f'<del>{self.inline_render(token.children)}</del>',
            TokenKind.LINK: self.link_render,
            TokenKind.IMAGE: self.image_render,
            TokenKind.BR: lambda token: '<br>',
            TokenKind.FOOTNOTE_REF: self.footnoteRef_render,
            TokenKind.INCOMPLETE: self.incomplete_render,
        }

    def node_render(self, token: Token, construct: Optional[IncompleteConstruct] = None) -> RenderNode:
        """
        Render one top-level token into a RenderNode.

        Args:
            token: Top-level token
            construct: Set when the whole token is an incomplete construct
                       to be replaced by its placeholder (or hidden)
        """
        key = f"{token.type}-{token.uid}"
        if construct is not None:
            component = construct.component
            markup = f'<{component} data-kind="{construct.kind}"></{component}>' if component else ''
            return RenderNode(key=key, uid=token.uid, kind=token.type,
                              component=component or '', html=markup,
                              props={'kind': construct.kind},
                              provisional=True, placeholder=True)

        self.calls += 1
        self._placeholders = []
        self._components = []
        self._current = token
        markup = self.token_render(token)
        if self.sanitizer is not None and rawHtml_has(token):
            markup = nh3.clean(markup, **self.sanitizer)
        component, props = self.component_resolve(token)
        if self._placeholders:
            props['placeholders'] = list(self._placeholders)
        if self._components:
            props['components'] = list(self._components)
        LOG(f"Rendered {key} ({len(markup)} chars)", level=3)
        return RenderNode(key=key, uid=token.uid, kind=token.type, component=component,
                          html=markup, text=token.plainText(), props=props,
                          provisional=token.provisional)

    def token_render(self, token: Token) -> str:
        """Render any token, applying the resolution order"""
        if self.registry is not None:
            extension_renderer = self.registry.renderer_get(token.type)
            if extension_renderer is not None:
                return self.hook_call(token.type, extension_renderer, token)

        override = self.overrides.get(token.type)
        if override is not None:
            return self.hook_call(f"renderer:{token.type}", override, token, self)

        builtin = self.builtins.get(token.type)
        if builtin is not None:
            return builtin(token)
        return escape(token.raw)

    def hook_call(self, name: str, hook: Callable[..., Any], token: Token, *extra: Any) -> str:
        try:
            result = hook(token, *extra)
            if not isinstance(result, str):
                raise TypeError(f"renderer returned {type(result).__name__}, expected str")
            return result
        except Exception as exc:
            error = ExtensionError(name, 'render', exc)
            if self.registry is not None:
                self.registry.error_report(error)
            else:
                warn(str(error))
            return escape(token.raw)

    def sanitizer_build(self) -> Optional[Dict[str, Any]]:
        """
        nh3.clean() keyword arguments, or None when sanitizing is off.

        Custom component tags, placeholder tags and a custom paragraph tag
        are allowed on top of nh3's defaults. script and style stay in
        nh3's clean-content set and are always removed with their content.
        """
        sanitize = self.options.sanitize
        if not sanitize.enabled:
            return None
        extra_tags = set(self.options.components) | {'input'}
        extra_tags.update(component.lower() for component in self.detector.component_map.values()
                          if component and RE_TAG_NAME.match(component))
        if self.options.paragraph_tag:
            extra_tags.add(self.options.paragraph_tag.lower())
        extra_tags.update(tag.lower() for tag in sanitize.tags)
        tags = (set(nh3.ALLOWED_TAGS) | extra_tags) - {'script', 'style'}

        attributes: Dict[str, set] = {}
        for tag in tags:
            allowed = set(nh3.ALLOWED_ATTRIBUTES.get(tag, ())) | COMMON_ATTRIBUTES
            allowed |= EXTRA_ATTRIBUTES.get(tag, set())
            allowed |= sanitize.attributes.get(tag, set())
            attributes[tag] = allowed
        return {
            'tags': tags,
            'attributes': attributes,
            'url_schemes': set(sanitize.url_schemes),
            'generic_attribute_prefixes': {'data-'},
            'link_rel': None,
        }

    def url_safe(self, url: str) -> Optional[str]:
        """`url` unless its scheme is not allowed (only checked when sanitizing)"""
        if self.sanitizer is None:
            return url
        match = RE_URL_SCHEME.match(RE_URL_IGNORED.sub('', url))
        if match and match.group(1).lower() not in self.options.sanitize.url_schemes:
            LOG(f"Dropped URL with scheme {match.group(1)!r}", level=2)
            return None
        return url

    def blocks_render(self, tokens: List[Token]) -> str:
        return ''.join(self.token_render(token) for token in tokens)

    def inline_render(self, tokens: List[Token]) -> str:
        return ''.join(self.token_render(token) for token in tokens)

    def streamStatus_get(self, closed: bool) -> str:
        return 'loading' if not closed and self.has_next_chunk else 'done'

    def component_resolve(self, token: Token) -> Tuple[str, Dict[str, Any]]:
        """Component id and props for a top-level token"""
        if self.registry is not None and self.registry.get(token.type) is not None:
            return token.type, dict(token.attrs)

        if token.type == TokenKind.HTML and token.attrs.get('custom'):
            tag = token.attrs['tag']
            return self.options.components.get(tag, tag), {
                'tag': tag,
                'attributes': tagAttributes_parse(token.raw),
                'children': tagInner_get(token.raw, tag),
                'stream_status': self.streamStatus_get(token.attrs.get('closed', True)),
            }

        if token.type == TokenKind.CODE:
            return token.type, {
                'lang': token.attrs.get('lang', ''),
                'block': True,
                'stream_status': self.streamStatus_get(token.attrs.get('closed', True)),
            }
        if token.type == TokenKind.HEADING:
            return token.type, {'depth': token.attrs['depth']}
        if token.type == TokenKind.LIST:
            props = {'ordered': token.attrs['ordered']}
            if token.attrs['ordered']:
                props['start'] = token.attrs['start']
            return token.type, props
        return token.type, {}

    def paragraph_render(self, token: Token) -> str:
        tag = self.options.paragraph_tag or 'p'
        return f'<{tag}>{self.inline_render(token.children)}</{tag}>\n'

    def heading_render(self, token: Token) -> str:
        depth = token.attrs['depth']
        return f'<h{depth}>{self.inline_render(token.children)}</h{depth}>\n'

    def lexer_get(self, lang: str) -> Lexer:
        try:
            return get_lexer_by_name(lang) if lang else TextLexer()
        except ClassNotFound:
            return TextLexer()

    def code_render(self, token: Token) -> str:
        lang = token.attrs.get('lang', '')
        status = self.streamStatus_get(token.attrs.get('closed', True))
        if self.options.highlight_code:
            # noclasses=True keeps styles inline, no external CSS needed
            formatter = HtmlFormatter(style=appsettings.pygments_style, noclasses=True, nowrap=True)
            body = highlight(token.text, self.lexer_get(lang), formatter)
        else:
            body = escape(token.text)
        lang_attrs = f' data-lang="{escape(lang)}" class="language-{escape(lang)}"' if lang else ''
        return f'<pre><code data-block="true" data-state="{status}"{lang_attrs}>{body}</code></pre>\n'

    def blockquote_render(self, token: Token) -> str:
        return f'<blockquote>\n{self.blocks_render(token.children)}</blockquote>\n'

    def list_render(self, token: Token) -> str:
        ordered = token.attrs.get('ordered', False)
        tag = 'ol' if ordered else 'ul'
        start = token.attrs.get('start', 1)
        start_attr = f' start="{start}"' if ordered and start != 1 else ''
        items = ''.join(self.token_render(item) for item in token.children)
        return f'<{tag}{start_attr}>\n{items}</{tag}>\n'

    def listItem_render(self, token: Token) -> str:
        body = ''
        if token.attrs.get('task'):
            checked = ' checked' if token.attrs.get('checked') else ''
            body = f'<input type="checkbox" disabled{checked}> '
        if token.attrs.get('loose'):
            body += self.blocks_render(token.children)
        else:
            # Tight lists render paragraph content without <p>
            for child in token.children:
                if child.type == TokenKind.PARAGRAPH:
                    body += self.inline_render(child.children)
                else:
                    body += self.token_render(child)
        return f'<li>{body}</li>\n'

    def table_render(self, token: Token) -> str:
        head, *rows = token.children
        out = f'<table>\n<thead>\n{self.token_render(head)}</thead>\n'
        if rows:
            out += f'<tbody>\n{"".join(self.token_render(row) for row in rows)}</tbody>\n'
        return out + '</table>\n'

    def tableRow_render(self, token: Token) -> str:
        return f'<tr>\n{"".join(self.token_render(cell) for cell in token.children)}</tr>\n'

    def tableCell_render(self, token: Token) -> str:
        tag = 'th' if token.attrs.get('header') else 'td'
        align = token.attrs.get('align')
        align_attr = f' align="{align}"' if align else ''
        return f'<{tag}{align_attr}>{self.inline_render(token.children)}</{tag}>\n'

    def footnote_render(self, token: Token) -> str:
        ident = escape(token.attrs['id'])
        return (f'<div class="footnote" id="fn-{ident}"><sup>{ident}</sup> '
                f'{self.inline_render(token.children)}</div>\n')

    def html_render(self, token: Token) -> str:
        if token.attrs.get('custom') and token is not self._current and not token.attrs.get('closing'):
            tag = token.attrs['tag']
            self._components.append({
                'tag': tag,
                'component': self.options.components.get(tag, tag),
                'attributes': tagAttributes_parse(token.raw),
                'stream_status': self.streamStatus_get(token.attrs.get('closed', True)),
            })
        return token.raw if token.attrs.get('inline') else token.text

    def link_render(self, token: Token) -> str:
        href = self.url_safe(token.attrs.get('href', ''))
        href_attr = f' href="{escape(href)}"' if href is not None else ''
        title = token.attrs.get('title')
        title_attr = f' title="{escape(title)}"' if title else ''
        target = ' target="_blank" rel="noopener noreferrer"' if self.options.open_links_in_new_tab else ''
        return f'<a{href_attr}{title_attr}{target}>{self.inline_render(token.children)}</a>'

    def image_render(self, token: Token) -> str:
        src = self.url_safe(token.attrs.get('href', ''))
        src_attr = f' src="{escape(src)}"' if src is not None else ''
        title = token.attrs.get('title')
        title_attr = f' title="{escape(title)}"' if title else ''
        return f'<img{src_attr} alt="{escape(token.text)}"{title_attr}>'

    def footnoteRef_render(self, token: Token) -> str:
        ident = escape(token.attrs['id'])
        return f'<sup class="footnote-ref"><a href="#fn-{ident}" id="fnref-{ident}">{ident}</a></sup>'

    def incomplete_render(self, token: Token) -> str:
        kind = token.attrs.get('kind', '')
        if token.raw == '!':
            # Lone trailing "!" stays hidden until the next character arrives
            return ''
        component = self.detector.placeholder_get(kind)
        if component:
            self._placeholders.append(component)
            return f'<{component} data-kind="{kind}"></{component}>'
        if self.detector.hidden_is(kind):
            return ''
        return escape(token.raw)
