import posixpath
import re

# pylint: disable=missing-function-docstring

_SEGMENT_RE = re.compile(
    # "*" or "<ident>" or "<ident:regex>" or ":ident"
    # "<...>" is complicated because escaping > is allowed ("<ident:foo\>bar>")
    r'(<([a-zA-Z_][a-zA-Z0-9_]*)(?::((?:\\.|[^>])*))?>)|(\*)|(:([a-zA-Z_][a-zA-Z0-9_]*))')


def path_to_pattern(val: str) -> re.Pattern[str]:
    """Encode non-regex patterns as regex.

    Every pattern is anchored at the start of the path only, so a route
    pattern matches any path it is a prefix of.
    """
    if val.startswith('^'):
        return re.compile(val)  # indicates raw regex

    val = re.sub(r"//+", "/", "/" + val)

    def parts(val):
        i = 0
        yield "^"
        for m in _SEGMENT_RE.finditer(val):
            if m.start() > i:
                yield re.escape(val[i:m.start()])
            if m.group() == "*":
                yield r"[^/]+"
            elif m.group(6):
                yield "(?P<%s>[^/]+)" % m.group(6)
            else:
                yield "(?P<%s>%s)" % (m.group(2), m.group(3) or r'[^/]+')
            i = m.end()
        if i < len(val):
            yield re.escape(val[i:])
    return re.compile("".join(parts(val)))


def clean_path(p: str) -> str:
    """Return the canonical path for p, eliminating . and .. elements.

    Repeated slashes are collapsed and a trailing slash is preserved.
    Escapes are left alone; "/a%2Fb" is already canonical.
    """
    if not p:
        return "/"
    if p[0] != '/':
        p = "/" + p
    np = posixpath.normpath(p)
    if np.startswith("//"):  # posix keeps a leading double slash
        np = "/" + np.lstrip("/")
    if p[-1] == '/' and np != '/':
        np += '/'
    return np


_KVP_RE = re.compile(
    r"""\s*;\s*(?:                        # prefix by delim
        ([^"=\s;]+) =                     # key (group 1)
        ([^"=\s;]+ | "(?:\\\\|\\"|.)*?" ) # val (group 2)
    )?""", re.VERBOSE)

def _unquote(val:str, unescape=False):
    if len(val)>=2 and '"' == val[0] == val[-1]:
        if unescape:
            return val[1:-1].replace("\\\\", "\\").replace('\\"', '"').replace("%22", '"')
    return val

def _header_kvp(val:str):
    for k,v in _KVP_RE.findall(f";{val}"):
        k, v = k.strip(), _unquote(v.strip(), True)
        if k:
            yield k,v

def parse_header_dict(val:str):
    return dict(_header_kvp(val))

def parse_header_options(val:str):
    first, _, rest = val.partition(';')
    return first.strip(), parse_header_dict(rest)
