"""
Markdown Stripper
Flattens Markdown-formatted scripts to plain text so the line scanners can match them.

Handles bold/italic markers, headers, blockquotes, tables (rows become
space-separated cells, separator rows are removed), inline code and
strikethrough. Line structure is preserved so line numbers stay valid.
"""

import re

_BOLD = re.compile(r'\*\*([^*]+)\*\*')
_ITALIC = re.compile(r'(^|\s)\*([^*\s][^*]*?)\*(\s|$)', re.MULTILINE)
_HEADER = re.compile(r'^#{1,6}\s+', re.MULTILINE)
_BLOCKQUOTE = re.compile(r'^>\s*', re.MULTILINE)
_TABLE_SEPARATOR = re.compile(r'^\|[-:\s|]+\|$', re.MULTILINE)
_TABLE_ROW = re.compile(r'^\|(.+?)\|$', re.MULTILINE)
_INLINE_CODE = re.compile(r'`([^`]+)`')
_STRIKETHROUGH = re.compile(r'~~([^~]+)~~')


def _flatten_table_row(match: re.Match) -> str:
    return ' '.join(cell.strip() for cell in match.group(1).split('|'))


def strip_markdown(text: str) -> str:
    """Strip Markdown syntax from text, keeping one output line per input line."""
    if not text:
        return text

    result = _BOLD.sub(r'\1', text)
    result = _ITALIC.sub(r'\1\2\3', result)
    result = _HEADER.sub('', result)
    result = _BLOCKQUOTE.sub('', result)
    result = _TABLE_SEPARATOR.sub('', result)
    result = _TABLE_ROW.sub(_flatten_table_row, result)
    result = _INLINE_CODE.sub(r'\1', result)
    result = _STRIKETHROUGH.sub(r'\1', result)
    return result
