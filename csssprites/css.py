"""
A small stylesheet tree on top of tinycss2.

tinycss2 tokenizes and parses the stylesheet; its rules, declarations and
comments are turned into nodes that keep the whitespace found around them,
so a tree that was not modified serializes back to the text it was parsed
from. Nodes hold a ``parent`` back-reference; :meth:`Container.insert_after`
and :meth:`Node.remove` are the only mutations the sprite pipeline needs.
"""
import tinycss2

from .exceptions import CssSyntaxError

# At-rules whose block holds rules instead of declarations
RULE_LIST_AT_RULES = ('media', 'supports', 'document', '-moz-document',
                      'layer', 'container', 'scope', 'starting-style')


class Node(object):
    type = None
    needs_semicolon = False

    def __init__(self, before='', source_file=None):
        self.parent = None
        self.before = before
        self.source_file = source_file

    def remove(self):
        """Detach this node from its parent and return it."""
        if self.parent is not None:
            self.parent.remove_child(self)
        return self

    def root(self):
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def next(self):
        if self.parent is None:
            return None
        index = self.parent.index(self) + 1
        nodes = self.parent.nodes
        return nodes[index] if index < len(nodes) else None

    def prev(self):
        if self.parent is None:
            return None
        index = self.parent.index(self) - 1
        return self.parent.nodes[index] if index >= 0 else None


class Declaration(Node):
    type = 'decl'
    needs_semicolon = True

    def __init__(self, prop, value, between=': ', after='', **kwargs):
        """Declaration constructor.

        :param prop: Property name, ``background-image``.
        :param value: Property value, ``!important`` included.
        :param between: Text between the property and the value.
        :param after: Whitespace found between the value and the ``;``.
        """
        super(Declaration, self).__init__(**kwargs)
        self.prop = prop
        self.value = value
        self.between = between
        self.after = after

    def __str__(self):
        return '%s%s%s%s' % (self.prop, self.between, self.value, self.after)

    def __repr__(self):
        return '<Declaration %s: %s>' % (self.prop, self.value)


class Comment(Node):
    type = 'comment'

    def __init__(self, text, left=' ', right=' ', **kwargs):
        super(Comment, self).__init__(**kwargs)
        self.text = text
        self.left = left
        self.right = right

    @classmethod
    def from_raw(cls, inner, **kwargs):
        """Build a comment from the text found between ``/*`` and ``*/``."""
        text = inner.strip()
        if not text:
            return cls('', left=inner, right='', **kwargs)
        left = inner[:len(inner) - len(inner.lstrip())]
        right = inner[len(inner.rstrip()):]
        return cls(text, left=left, right=right, **kwargs)

    def __str__(self):
        return '/*%s%s%s*/' % (self.left, self.text, self.right)

    def __repr__(self):
        return '<Comment %s>' % self.text


class Container(Node):

    def __init__(self, after='', semicolon=False, **kwargs):
        super(Container, self).__init__(**kwargs)
        self.nodes = []
        self.after = after
        self.semicolon = semicolon

    @property
    def first(self):
        return self.nodes[0] if self.nodes else None

    @property
    def last(self):
        return self.nodes[-1] if self.nodes else None

    def index(self, child):
        for index, node in enumerate(self.nodes):
            if node is child:
                return index
        raise ValueError('%r is not a child of %r' % (child, self))

    def append(self, *nodes):
        for node in nodes:
            node.remove()
            node.parent = self
            self.nodes.append(node)
        return self

    def insert_after(self, existing, node):
        """Insert ``node`` right after the ``existing`` child and return it."""
        node.remove()
        index = self.index(existing)
        node.parent = self
        self.nodes.insert(index + 1, node)
        return node

    def insert_before(self, existing, node):
        node.remove()
        index = self.index(existing)
        node.parent = self
        self.nodes.insert(index, node)
        return node

    def remove_child(self, child):
        del self.nodes[self.index(child)]
        child.parent = None

    def walk(self):
        """Depth-first iteration over every descendant.

        Children are snapshotted before being visited: nodes removed while
        walking are skipped and nodes inserted while walking are not visited.
        """
        for node in list(self.nodes):
            if node.parent is not self:
                continue
            yield node
            if isinstance(node, Container):
                for child in node.walk():
                    yield child

    def walk_rules(self):
        for node in self.walk():
            if node.type == 'rule':
                yield node

    def walk_decls(self, prop=None):
        """Walk declarations, optionally only the ones whose property equals
        ``prop`` (a string) or matches it (a compiled regular expression)."""
        for node in self.walk():
            if node.type != 'decl':
                continue
            if prop is None:
                yield node
            elif isinstance(prop, str):
                if node.prop == prop:
                    yield node
            elif prop.search(node.prop):
                yield node

    def walk_comments(self):
        for node in self.walk():
            if node.type == 'comment':
                yield node

    def stringify_body(self):
        last = -1
        for index, node in enumerate(self.nodes):
            if node.type != 'comment':
                last = index

        parts = []
        for index, node in enumerate(self.nodes):
            parts.append(node.before)
            parts.append(str(node))
            if node.needs_semicolon and (index != last or self.semicolon):
                parts.append(';')
        parts.append(self.after)
        return ''.join(parts)


class Rule(Container):
    type = 'rule'

    def __init__(self, selector, between=' ', **kwargs):
        super(Rule, self).__init__(**kwargs)
        self.selector = selector
        self.between = between

    def __str__(self):
        return '%s%s{%s}' % (self.selector, self.between,
                             self.stringify_body())

    def __repr__(self):
        return '<Rule %s>' % self.selector


class AtRule(Container):
    type = 'atrule'

    def __init__(self, name, params='', after_name=' ', between='',
                 has_block=False, **kwargs):
        super(AtRule, self).__init__(**kwargs)
        self.name = name
        self.params = params
        self.after_name = after_name
        self.between = between
        self.has_block = has_block

    @property
    def needs_semicolon(self):
        return not self.has_block

    def __str__(self):
        header = '@%s%s%s%s' % (self.name, self.after_name, self.params,
                                self.between)
        if self.has_block:
            return '%s{%s}' % (header, self.stringify_body())
        return header

    def __repr__(self):
        return '<AtRule @%s %s>' % (self.name, self.params)


class Root(Container):
    type = 'root'

    def __str__(self):
        return self.stringify_body()

    def __repr__(self):
        return '<Root %s>' % (self.source_file or '<css input>')


def split_whitespace(text):
    """Return the leading whitespace, the stripped text and the trailing
    whitespace of ``text``."""
    stripped = text.strip()
    if not stripped:
        return text, '', ''
    leading = text[:len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()):]
    return leading, stripped, trailing


def ends_with_semicolon(tokens):
    for token in reversed(tokens):
        if token.type in ('whitespace', 'comment'):
            continue
        return token.type == 'literal' and token.value == ';'
    return False


class TreeBuilder(object):
    """Turn the nodes produced by tinycss2 into a :class:`Root`."""

    def __init__(self, source_file=None):
        self.source_file = source_file

    def error(self, node):
        """Raise the tinycss2 parse error ``node`` as a CssSyntaxError."""
        raise CssSyntaxError(node.message, self.source_file,
                             '%d:%d' % (node.source_line, node.source_column))

    def build(self, css):
        root = Root(source_file=self.source_file, semicolon=True)
        self.fill(root, tinycss2.parse_stylesheet(
            css, skip_comments=False, skip_whitespace=False))
        return root

    def fill(self, container, nodes):
        before = ''
        for node in nodes:
            if node.type == 'whitespace':
                before += node.value
                continue

            child = self.convert(node)
            child.before = before
            before = ''
            container.append(child)

        container.after = before

        last = container.last
        if last is not None and last.type == 'decl' and \
                not container.semicolon:
            # Trailing whitespace belongs to the closing brace.
            container.after = last.after + container.after
            last.after = ''

    def convert(self, node):
        if node.type == 'error':
            self.error(node)
        if node.type == 'comment':
            return Comment.from_raw(node.value, source_file=self.source_file)
        if node.type == 'declaration':
            return self.declaration(node)
        if node.type == 'qualified-rule':
            return self.rule(node)
        if node.type == 'at-rule':
            return self.at_rule(node)
        raise CssSyntaxError('Unexpected %s' % node.type, self.source_file)

    def declaration(self, node):
        leading, value, trailing = split_whitespace(
            tinycss2.serialize(node.value))
        if node.important:
            value = '%s%s!important' % (value, trailing or ' ')
            trailing = ''
        return Declaration(node.name, value, between=':' + leading,
                           after=trailing, source_file=self.source_file)

    def rule(self, node):
        prelude = tinycss2.serialize(node.prelude)
        selector = prelude.rstrip()
        rule = Rule(selector, between=prelude[len(selector):],
                    semicolon=ends_with_semicolon(node.content),
                    source_file=self.source_file)
        self.fill(rule, tinycss2.parse_declaration_list(
            node.content, skip_comments=False, skip_whitespace=False))
        return rule

    def at_rule(self, node):
        leading, params, trailing = split_whitespace(
            tinycss2.serialize(node.prelude))
        at_rule = AtRule(node.at_keyword, params=params, after_name=leading,
                         between=trailing, has_block=node.content is not None,
                         source_file=self.source_file)
        if node.content is None:
            return at_rule

        at_rule.semicolon = ends_with_semicolon(node.content)
        if node.lower_at_keyword in RULE_LIST_AT_RULES:
            nodes = tinycss2.parse_rule_list(
                node.content, skip_comments=False, skip_whitespace=False)
        else:
            nodes = tinycss2.parse_declaration_list(
                node.content, skip_comments=False, skip_whitespace=False)
        self.fill(at_rule, nodes)
        return at_rule


def parse(css, source_file=None):
    """Parse ``css`` and return its :class:`Root`.

    :param css: Stylesheet contents.
    :param source_file: Absolute path of the stylesheet, stored on every
                        node as ``source_file``.
    """
    return TreeBuilder(source_file=source_file).build(css)
