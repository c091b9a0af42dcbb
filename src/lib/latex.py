"""
LaTeX math extensions

Inline math (`$...$`, `$$...$$`, `\\(...\\)`, `\\[...\\]` inside a
paragraph) and block math (`$$` fences on their own lines, or a `\\[...\\]`
block). TeX is not typeset here: the source is HTML-escaped inside wrapper
elements that a client-side math renderer picks up.
"""

import html
import re
from typing import List, Optional

from ..models.extensions import ExtensionLevel, ExtensionSpec
from ..models.tokens import Token


RE_INLINE_MATH = re.compile(
    r'^(?:\${1,2}([^$]{1,10000}?)\${1,2}'
    r'|\\\(([\s\S]{1,10000}?)\\\)'
    r'|\\\[((?:\\.|[^\\]){1,10000}?)\\\])'
)
RE_BLOCK_MATH = re.compile(
    r'^(\${1,2})\n([\s\S]{1,10000}?)\n\1(?:\n|$)'
    r'|^\\\[((?:\\.|[^\\]){1,10000}?)\\\]'
)


def align_replace(text: str) -> str:
    """{align*} is not supported by common math renderers; use {aligned}"""
    return text.replace('{align*}', '{aligned}') if text else text


def inlineMath_start(src: str) -> Optional[int]:
    indices = [index for index in (src.find('$'), src.find('\\('), src.find('\\['))
               if index != -1]
    return min(indices) if indices else None


def blockMath_start(src: str) -> Optional[int]:
    # Block math opens with a line holding only the dollar fence
    first_line = src.split('\n', 1)[0].rstrip()
    if first_line in ('$', '$$') or src.startswith('\\['):
        return 0
    return None


def latex_extensions(replace_align_start: bool = True) -> List[ExtensionSpec]:
    """
    Build the inline and block math extensions.

    Args:
        replace_align_start: Rewrite {align*} environments to {aligned}

    Returns:
        [inlineKatex, blockKatex] extension specs, ready for SessionConfig.extensions

    Example:
        >>> session = create_session({"extensions": latex_extensions()})
        >>> session.append("Euler: $e^{i\\\\pi} + 1 = 0$")
    """

    def inline_tokenize(src: str) -> Optional[Token]:
        match = RE_INLINE_MATH.match(src)
        if not match:
            return None
        text = (match.group(1) or match.group(2) or match.group(3) or '').strip()
        if replace_align_start:
            text = align_replace(text)
        return Token(type='inlineKatex', raw=match.group(0), text=text,
                     attrs={'display_mode': False})

    def block_tokenize(src: str) -> Optional[Token]:
        match = RE_BLOCK_MATH.match(src)
        if not match:
            return None
        text = match.group(2) if match.group(2) is not None else match.group(3).strip()
        if replace_align_start:
            text = align_replace(text)
        return Token(type='blockKatex', raw=match.group(0), text=text,
                     attrs={'display_mode': True})

    def inline_render(token: Token) -> str:
        return f'<span class="inline-katex">{html.escape(token.text)}</span>'

    def block_render(token: Token) -> str:
        return f'<div class="katex-block">{html.escape(token.text)}</div>\n'

    return [
        ExtensionSpec(
            name='inlineKatex',
            level=ExtensionLevel.INLINE,
            start=inlineMath_start,
            tokenizer=inline_tokenize,
            renderer=inline_render,
            description='Inline TeX math',
        ),
        ExtensionSpec(
            name='blockKatex',
            level=ExtensionLevel.BLOCK,
            start=blockMath_start,
            tokenizer=block_tokenize,
            renderer=block_render,
            description='Block TeX math',
        ),
    ]
