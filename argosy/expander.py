"""
Argosy response files: '@file' token expansion.

- LINE_SEPARATED: one token per non-blank line, trimmed.
- SPACE_SEPARATED: shell-like splitting per line (shlex), honouring quotes;
  backslashes are literal characters, not escapes.
- In both modes, lines whose first non-blank character is '#' are comments.

Expansion is recursive: a token '@other' inside a response file is expanded
too, relative to the directory of the file that mentions it. A file that
references itself (directly or through other files) raises TokenizationError;
only the chain of files currently being expanded counts, so the same file may
appear twice side by side.
"""
import logging
import pathlib
import shlex

from .enums import ResponseFileHandling
from .faults import FaultCode, TokenizationError, getdoc
from .utils import Unset, coalesce

logger = logging.getLogger(__name__)


class ResponseFileExpander:
    """
    Expand '@file' tokens according to a ResponseFileHandling mode.

    Parameters
    - handling: ResponseFileHandling. DISABLED passes tokens through untouched.
    - directory: Unset | str | PathLike. Base for relative paths (the working
      directory at expansion time when Unset).
    - encoding: text encoding of response files.
    """

    def __init__(self, handling, /, directory=Unset, encoding="utf-8"):
        if not isinstance(handling, ResponseFileHandling):
            raise TypeError("response-file-expander 'handling' must be a response-file handling")
        self._handling = handling
        self._directory = directory
        self._encoding = encoding

    @property
    def handling(self):
        return self._handling

    def expand(self, tokens, /):
        """
        Return the token list with every '@file' token replaced by its contents.

        Raises
        - TokenizationError: on unreadable or malformed files and on cycles. The
          original OSError/ValueError is chained as __cause__.
        """
        tokens = list(tokens)
        if self._handling is ResponseFileHandling.DISABLED:
            return tokens
        directory = pathlib.Path(coalesce(self._directory, pathlib.Path.cwd()))
        return list(self._expand(tokens, directory, ()))

    def _expand(self, tokens, directory, chain):
        for token in tokens:
            if not token.startswith("@") or len(token) == 1:
                yield token
                continue

            path = (directory / token[1:]).resolve()
            if path in chain:
                cycle = " -> ".join(str(step) for step in (*chain[chain.index(path):], path))
                raise TokenizationError(
                    "response file %r references itself (%s)" % (token[1:], cycle),
                    title="cyclic response file",
                    code=FaultCode.CYCLIC_RESPONSE_FILE,
                    token=token,
                    path=path,
                    cycle=(*chain[chain.index(path):], path),
                    hint="remove the '@' reference that points back to %s" % path.name,
                    docs=getdoc(FaultCode.CYCLIC_RESPONSE_FILE),
                )

            logger.debug("expanding response file %s", path)
            yield from self._expand(self._split(self._read(path, token), path, token), path.parent, (*chain, path))

    def _read(self, path, token):
        try:
            return path.read_text(encoding=self._encoding)
        except OSError as error:
            raise TokenizationError(
                "response file %r cannot be read: %s" % (token[1:], error.strerror or error),
                title="unreadable response file",
                code=FaultCode.UNREADABLE_RESPONSE_FILE,
                token=token,
                path=path,
                hint="check that the file exists and is readable",
                docs=getdoc(FaultCode.UNREADABLE_RESPONSE_FILE),
            ) from error
        except UnicodeDecodeError as error:
            raise TokenizationError(
                "response file %r is not valid %s text" % (token[1:], self._encoding),
                title="malformed response file",
                code=FaultCode.MALFORMED_RESPONSE_FILE,
                token=token,
                path=path,
                hint="save the file as %s text" % self._encoding,
                docs=getdoc(FaultCode.MALFORMED_RESPONSE_FILE),
            ) from error

    def _split(self, contents, path, token):
        tokens = []
        for number, line in enumerate(contents.splitlines(), 1):
            if not (line := line.strip()) or line.startswith("#"):
                continue
            if self._handling is ResponseFileHandling.LINE_SEPARATED:
                tokens.append(line)
                continue
            # quotes group words; backslashes are kept as typed (regexes, windows paths)
            lexer = shlex.shlex(line, posix=True)
            lexer.whitespace_split = True
            lexer.escape = ""
            lexer.commenters = ""
            try:
                tokens.extend(lexer)
            except ValueError as error:
                raise TokenizationError(
                    "response file %r has a malformed line %d: %s" % (token[1:], number, error),
                    title="malformed response file",
                    code=FaultCode.MALFORMED_RESPONSE_FILE,
                    token=token,
                    path=path,
                    line=number,
                    hint="close the quote opened on line %d" % number,
                    docs=getdoc(FaultCode.MALFORMED_RESPONSE_FILE),
                ) from error
        return tokens


def expand(tokens, handling, /, directory=Unset):
    """
    shortcut for ResponseFileExpander(handling, directory).expand(tokens).
    """
    return ResponseFileExpander(handling, directory).expand(tokens)


__all__ = (
    "ResponseFileExpander",
    "expand",
)
