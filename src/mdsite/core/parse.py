"""Markdown front end: frontmatter, markdown-it tokens to content nodes, directories to trees"""

import re
from pathlib import Path as FilePath
from typing import Any, Optional

import yaml
from markdown_it import MarkdownIt

from mdsite.core import resolvers
from mdsite.core.models import (
    BulletList,
    Choice,
    Choices,
    Code,
    CodeBlock,
    Document,
    DocumentTree,
    Emphasis,
    ExternalLink,
    Heading,
    ListItem,
    Paragraph,
    Quote,
    RawBlock,
    Rule,
    StaticInput,
    Strong,
    Text,
)
from mdsite.core.path import Path, Root


FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---\s*\n', re.DOTALL)
DIRECTIVE_RE = re.compile(r'^<!--\s*@([\w-]+)(.*?)-->\s*$', re.DOTALL)
CHOICE_RE = re.compile(r'^@choice\s+([\w-]+)\s*=\s*([\w.-]+)\s*$')
MD_EXTENSIONS = {'.md', '.mdx'}
TREE_CONFIG_FILE = 'directory.yaml'


def heading_level(token) -> int | None:
    """Heading level (1-6) from an hN tag, else None."""
    if token.tag and token.tag[0] == 'h' and token.tag[1:].isdigit():
        return int(token.tag[1:])
    return None


def _make_parser(preset: str) -> MarkdownIt:
    """Build a MarkdownIt instance for the given preset name."""
    return MarkdownIt(preset, options_update={"linkify": False})


def _strip_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body) with YAML header removed."""
    m = FRONTMATTER_RE.match(text)
    if m:
        try:
            fm = yaml.safe_load(m.group(1)) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML frontmatter: {e}") from e
        if not isinstance(fm, dict):
            raise ValueError(f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}")
        return fm, text[m.end():]
    return {}, text


def _source_slice(token, source_lines: list[str]) -> str:
    """Raw source for a block via token.map; fallback to token.content."""
    if token.map:
        start, end = token.map
        return ''.join(source_lines[start:end]).rstrip()
    return token.content.rstrip()


def _skip_block(tokens: list, i: int) -> int:
    """Index just past the close token matching the open token at i."""
    depth = 0
    while i < len(tokens):
        depth += tokens[i].nesting
        i += 1
        if depth <= 0:
            break
    return i


def _is_document_ref(href: str) -> bool:
    target = href.partition('#')[0]
    return FilePath(target).suffix in MD_EXTENSIONS


def _link(href: str, content: tuple):
    if '://' in href or href.startswith('mailto:'):
        return ExternalLink(href, content)
    if href.startswith('#') or _is_document_ref(href):
        return resolvers.link(href, content, source=f"[...]({href})")
    return ExternalLink(href, content)


def _inline(children: list, i: int = 0, close: Optional[str] = None) -> tuple[tuple, int]:
    """Convert inline tokens up to the close token type into span nodes."""
    nodes = []
    while i < len(children):
        tok = children[i]
        if close and tok.type == close:
            return tuple(nodes), i + 1
        if tok.type == 'link_open':
            inner, i = _inline(children, i + 1, 'link_close')
            nodes.append(_link(tok.attrGet('href') or '', inner))
            continue
        if tok.type in ('em_open', 'strong_open'):
            inner, i = _inline(children, i + 1, tok.type.replace('_open', '_close'))
            nodes.append(Emphasis(inner) if tok.type == 'em_open' else Strong(inner))
            continue
        if tok.type.endswith('_open'):
            # strikethrough and other span markup without a dedicated node keep their text
            inner, i = _inline(children, i + 1, tok.type.replace('_open', '_close'))
            nodes.extend(inner)
            continue

        if tok.type == 'text' or tok.type == 'html_inline':
            nodes.append(Text(tok.content))
        elif tok.type == 'softbreak':
            nodes.append(Text(' '))
        elif tok.type == 'hardbreak':
            nodes.append(Text('\n'))
        elif tok.type == 'code_inline':
            nodes.append(Code(tok.content))
        elif tok.type == 'image':
            nodes.append(ExternalLink(tok.attrGet('src') or '', (Text(tok.content),)))
        i += 1
    return tuple(nodes), i


def _directive(name: str, args: str, source: str):
    """Resolver node for an '<!-- @name key=value -->' comment, None if unknown."""
    options = dict(re.findall(r'([\w-]+)=([\w.-]+)', args))
    if name == 'nav':
        return resolvers.navigation(int(options.get('depth', 2)), source=source)
    if name == 'downloads':
        return resolvers.downloads(source=source)
    return None


def _merge_choices(nodes: list) -> tuple:
    """Collapse adjacent single-option Choices blocks of the same dimension."""
    merged: list = []
    for node in nodes:
        if isinstance(node, Choices) and merged and isinstance(merged[-1], Choices) \
                and merged[-1].name == node.name:
            merged[-1] = Choices(node.name, merged[-1].options + node.options)
        else:
            merged.append(node)
    return tuple(merged)


def _blocks(tokens: list, lines: list[str], md: MarkdownIt, i: int = 0, close: Optional[str] = None) -> tuple[tuple, int]:
    """Convert block tokens up to the close token type into block nodes."""
    nodes = []
    while i < len(tokens):
        tok = tokens[i]
        t = tok.type
        if close and t == close:
            return _merge_choices(nodes), i + 1

        if t in ('heading_open', 'paragraph_open'):
            spans, _ = _inline(tokens[i + 1].children or [])
            nodes.append(Heading(heading_level(tok) or 1, spans) if t == 'heading_open' else Paragraph(spans))
            i += 3
        elif t in ('bullet_list_open', 'ordered_list_open'):
            items, i = _blocks(tokens, lines, md, i + 1, t.replace('_open', '_close'))
            nodes.append(BulletList(items, ordered=t == 'ordered_list_open'))
        elif t == 'list_item_open':
            content, i = _blocks(tokens, lines, md, i + 1, 'list_item_close')
            nodes.append(ListItem(content))
        elif t == 'blockquote_open':
            content, i = _blocks(tokens, lines, md, i + 1, 'blockquote_close')
            nodes.append(Quote(content))
        elif t == 'fence':
            m = CHOICE_RE.match(tok.info.strip())
            if m:
                inner = tok.content
                content, _ = _blocks(md.parse(inner), inner.splitlines(keepends=True), md)
                nodes.append(Choices(m.group(1), (Choice(m.group(2), content),)))
            else:
                nodes.append(CodeBlock(tok.content, tok.info.strip()))
            i += 1
        elif t == 'code_block':
            nodes.append(CodeBlock(tok.content))
            i += 1
        elif t == 'hr':
            nodes.append(Rule())
            i += 1
        elif t == 'html_block':
            m = DIRECTIVE_RE.match(tok.content.strip())
            node = _directive(m.group(1), m.group(2), tok.content.strip()) if m else None
            nodes.append(node if node is not None else RawBlock(tok.content.rstrip()))
            i += 1
        elif tok.nesting == 1:
            # tables and other structures without a dedicated node keep their source
            nodes.append(RawBlock(_source_slice(tok, lines)))
            i = _skip_block(tokens, i)
        else:
            i += 1
    return _merge_choices(nodes), i


def parse_text(text: str, path: Path, parser_config: str = 'gfm-like', md: Optional[MarkdownIt] = None) -> Document:
    """Parse markdown text (with optional frontmatter) into a Document at path."""
    md = md or _make_parser(parser_config)
    frontmatter, body = _strip_frontmatter(text)
    content, _ = _blocks(md.parse(body), body.splitlines(keepends=True), md)
    return Document(path, content, frontmatter)


def parse_file(file: FilePath, path: Optional[Path] = None, parser_config: str = 'gfm-like',
               md: Optional[MarkdownIt] = None) -> Document:
    """Parse a single markdown file; the virtual path defaults to '/<file name>'."""
    return parse_text(file.read_text(encoding='utf-8'), path or Root / file.name, parser_config, md)


def _load_tree_config(file: FilePath) -> dict[str, Any]:
    if not file.exists():
        return {}
    try:
        data = yaml.safe_load(file.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid {file}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid {file}: expected a mapping, got {type(data).__name__}")
    return data


def _parse_tree(directory: FilePath, path: Path, md: MarkdownIt) -> DocumentTree:
    docs, trees, statics = [], [], {}
    for entry in sorted(directory.iterdir()):
        if entry.name.startswith('.') or entry.name == TREE_CONFIG_FILE:
            continue
        child = path / entry.name
        if entry.is_dir():
            trees.append(_parse_tree(entry, child, md))
        elif entry.suffix in MD_EXTENSIONS:
            try:
                docs.append(parse_file(entry, child, md=md))
            except Exception as e:
                raise RuntimeError(f"Failed to parse {entry}: {e}") from e
        else:
            statics[child] = StaticInput.from_file(child, entry)
    return DocumentTree(path, tuple(docs), tuple(trees), _load_tree_config(directory / TREE_CONFIG_FILE), statics)


def parse_dir(root: FilePath, parser_config: str = 'gfm-like') -> DocumentTree:
    """Parse a directory recursively into a DocumentTree rooted at '/'."""
    if not root.is_dir():
        raise ValueError(f"Not a directory: {root}")
    return _parse_tree(root, Root, _make_parser(parser_config))
