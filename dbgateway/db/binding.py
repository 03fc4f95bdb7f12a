"""Rewriting positional placeholders into SQLAlchemy named binds."""

import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from dbgateway.exceptions import QueryValidationError


# ``?`` (sqlite/mysql style), ``$1`` (postgres style) and ``@param0`` (mssql style, zero based)
_NUMBERED_STYLES = r"(?<![\w$])\$(?P<dollar>\d+)|(?<![\w@])@param(?P<at>\d+)\b"
_NUMBERED = re.compile(_NUMBERED_STYLES, re.IGNORECASE)
_PLACEHOLDER = re.compile(r"(?P<question>\?(?![|&](?![|&])))|" + _NUMBERED_STYLES, re.IGNORECASE)
_DOLLAR_QUOTE = re.compile(r"\$([A-Za-z_]\w*)?\$")
_COLON_BIND = re.compile(r"(?<![:\w\\]):(\w+)(?!:)")


def _split_literals(sql: str) -> List[Tuple[bool, str]]:
    """Split SQL into ``(is_literal, text)`` chunks.

    Quoted strings and identifiers, comments and dollar-quoted bodies are
    literal chunks; placeholders are only looked for in the rest.
    """
    chunks: List[Tuple[bool, str]] = []
    n = len(sql)
    i = start = 0

    while i < n:
        ch = sql[i]
        end: Optional[int] = None

        if ch in "'\"`":
            end = i + 1
            while end < n:
                if sql[end] == ch:
                    if end + 1 < n and sql[end + 1] == ch:
                        end += 2
                        continue
                    end += 1
                    break
                end += 1
        elif sql.startswith('--', i):
            newline = sql.find('\n', i)
            end = n if newline == -1 else newline
        elif sql.startswith('/*', i):
            close = sql.find('*/', i + 2)
            end = n if close == -1 else close + 2
        elif ch == '$':
            match = _DOLLAR_QUOTE.match(sql, i)
            if match:
                close = sql.find(match.group(0), match.end())
                end = n if close == -1 else close + len(match.group(0))

        if end is None:
            i += 1
            continue

        if start < i:
            chunks.append((False, sql[start:i]))
        chunks.append((True, sql[i:end]))
        i = start = end

    if start < n:
        chunks.append((False, sql[start:]))
    return chunks


def _escape_colons(text: str) -> str:
    # text() would otherwise read ``:word`` as a bind parameter
    return _COLON_BIND.sub(r"\\:\1", text)


def bind_parameters(query: str, parameters: Optional[Sequence[Any]] = None) -> Tuple[str, Dict[str, Any]]:
    """Rewrite positional placeholders into ``:p1``, ``:p2`` ... named binds.

    ``$n`` and ``@paramN`` may repeat and refer to the same value; each ``?``
    consumes the next parameter. Every supplied parameter must be referenced.

    A ``?`` is left as written when no parameters are supplied or when the
    query uses ``$n``/``@paramN``, so PostgreSQL's jsonb ``?`` operator
    survives in those queries. ``?|`` and ``?&`` are always operators.

    Args:
        query: SQL text using one placeholder style.
        parameters: Positional parameter values.

    Returns:
        Tuple of the rewritten SQL and the bind mapping for ``text()``.

    Raises:
        QueryValidationError: On mixed ``$n``/``@paramN`` styles or when
            placeholders and parameters do not line up.
    """
    params = list(parameters or [])
    chunks = _split_literals(query)
    numbered = any(_NUMBERED.search(chunk) for is_literal, chunk in chunks if not is_literal)
    bind_question_marks = bool(params) and not numbered

    pieces: List[str] = []
    bound: Dict[str, Any] = {}
    styles = set()
    positional = 0

    for is_literal, chunk in chunks:
        if is_literal:
            pieces.append(_escape_colons(chunk))
            continue

        last = 0
        for match in _PLACEHOLDER.finditer(chunk):
            if match.group('question') is not None:
                if not bind_question_marks:
                    continue
                styles.add('?')
                positional += 1
                index = positional
            elif match.group('dollar') is not None:
                styles.add('$')
                index = int(match.group('dollar'))
            else:
                styles.add('@')
                index = int(match.group('at')) + 1

            pieces.append(_escape_colons(chunk[last:match.start()]))
            if index < 1 or index > len(params):
                raise QueryValidationError(
                    f"Placeholder {match.group(0)} has no matching parameter "
                    f"({len(params)} supplied)",
                    query=query,
                )

            name = f"p{index}"
            bound[name] = params[index - 1]
            # text() does not see ``:p1::int`` as a bind; ``:p1 ::int`` is the same cast
            spacer = ' ' if chunk.startswith(':', match.end()) else ''
            pieces.append(f":{name}{spacer}")
            last = match.end()

        pieces.append(_escape_colons(chunk[last:]))

    if len(styles) > 1:
        raise QueryValidationError("Query mixes placeholder styles", query=query)

    if len(bound) != len(params):
        raise QueryValidationError(
            f"Query uses {len(bound)} parameter(s) but {len(params)} were supplied",
            query=query,
        )

    return "".join(pieces), bound
