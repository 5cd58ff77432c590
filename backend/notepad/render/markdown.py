from markdown_it import MarkdownIt

TABLE_CLASSES = "html-table html-table-bordered small"


def _link_open(self, tokens, idx, options, env):
    token = tokens[idx]
    href = token.attrGet("href")
    # in-page anchors stay in the same tab
    if href and not href.startswith("#"):
        token.attrSet("target", "_blank")
        token.attrSet("rel", "noopener noreferrer")
    return self.renderToken(tokens, idx, options, env)


def _table_open(self, tokens, idx, options, env):
    return f'<table class="{TABLE_CLASSES}">\n'


class MarkdownRenderer:
    def __init__(self):
        self._md = MarkdownIt("js-default", {"linkify": True, "typographer": True})
        self._md.add_render_rule("link_open", _link_open)
        self._md.add_render_rule("table_open", _table_open)

    def render(self, content: str) -> str:
        return self._md.render(content)
