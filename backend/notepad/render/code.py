import logging
from typing import Any, Optional

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexer import Lexer
from pygments.lexers import TextLexer, get_all_lexers, get_lexer_by_name, guess_lexer
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)


def _lexer_name(lexer: Lexer) -> str:
    return lexer.aliases[0] if lexer.aliases else lexer.name.lower()


class CodeRenderer:
    """Syntax highlighting to an HTML fragment of ``<span>`` tokens."""

    def __init__(self):
        # nowrap: caller owns the surrounding <pre>
        self._formatter = HtmlFormatter(nowrap=True)

    def _resolve_lexer(self, content: str, language: Optional[str]) -> Lexer:
        if language:
            try:
                return get_lexer_by_name(language)
            except ClassNotFound:
                logger.info("Unknown language %r, falling back to detection", language)
        try:
            return guess_lexer(content)
        except ClassNotFound:
            return TextLexer()

    def render(self, content: str, language: Optional[str] = None) -> dict[str, Any]:
        lexer = self._resolve_lexer(content, language)
        return {
            "language": _lexer_name(lexer),
            "value": highlight(content, lexer, self._formatter),
        }

    def list_languages(self) -> list[dict[str, Any]]:
        languages = [
            {"name": aliases[0], "aliases": list(aliases[1:])}
            for _, aliases, _, _ in get_all_lexers()
            if aliases
        ]
        return sorted(languages, key=lambda lang: lang["name"])


def stylesheet(dark: bool = False) -> str:
    style = "monokai" if dark else "default"
    return HtmlFormatter(style=style).get_style_defs(".highlight")
