"""GitHub-style print template for rendered Markdown.

The template is static markup and CSS only. Nothing in it needs script
execution, so the page looks the same in a headless engine as in a browser.
"""
from __future__ import annotations

from .config import REMOTE_FONTS
from .models import RenderedDocument


GOOGLE_FONTS_IMPORT = (
    "@import url('https://fonts.googleapis.com/css2"
    "?family=Inter:wght@300;400;500;600;700"
    "&family=Fira+Code:wght@300;400;500;600"
    "&family=Noto+Sans:wght@300;400;500;600;700"
    "&family=Noto+Sans+SC:wght@300;400;500;600;700"
    "&family=Noto+Sans+JP:wght@300;400;500;600;700"
    "&family=Noto+Sans+KR:wght@300;400;500;600;700"
    "&display=swap');"
)

# Latin first, then Simplified Chinese, Japanese and Korean, then the
# platform CJK fonts, ending on the generic family.
BODY_FONT_STACK = (
    "'Inter', 'Noto Sans', 'Noto Sans SC', 'Noto Sans JP', 'Noto Sans KR', "
    "-apple-system, BlinkMacSystemFont, 'Segoe UI', "
    "'PingFang SC', 'Hiragino Sans', 'Apple SD Gothic Neo', "
    "'Microsoft YaHei', 'Meiryo', 'Malgun Gothic', "
    "'Noto Sans CJK SC', 'Noto Sans CJK JP', 'Noto Sans CJK KR', "
    "'SimSun', 'Arial Unicode MS', sans-serif"
)

MONO_FONT_STACK = (
    "'Fira Code', 'Noto Sans Mono', Consolas, Monaco, 'Courier New', "
    "'Noto Sans Mono CJK SC', 'Microsoft YaHei', 'SimSun', monospace"
)

BASE_CSS = f"""
* {{
  -webkit-print-color-adjust: exact;
  print-color-adjust: exact;
}}

body {{
  font-family: {BODY_FONT_STACK};
  line-height: 1.6;
  color: #24292e;
  background: white;
  margin: 0;
}}

.markdown-body {{
  max-width: 800px;
  margin: 0 auto;
  padding: 2rem;
  word-wrap: break-word;
}}

h1, h2, h3, h4, h5, h6 {{
  margin-top: 2rem;
  margin-bottom: 1rem;
  font-weight: 600;
  line-height: 1.25;
  color: #1a202c;
  page-break-after: avoid;
  break-after: avoid;
}}

h1 {{ font-size: 2rem; border-bottom: 1px solid #e1e4e8; padding-bottom: 0.5rem; }}
h2 {{ font-size: 1.5rem; border-bottom: 1px solid #e1e4e8; padding-bottom: 0.3rem; }}
h3 {{ font-size: 1.25rem; }}
h4 {{ font-size: 1rem; }}
h5 {{ font-size: 0.875rem; }}
h6 {{ font-size: 0.85rem; color: #6a737d; }}

p {{ margin-top: 0; margin-bottom: 1rem; }}

ul, ol {{
  margin-top: 0;
  margin-bottom: 1rem;
  padding-left: 2rem;
}}

li {{ margin-bottom: 0.25rem; }}

li.task-list-item {{ list-style-type: none; }}
li.task-list-item input {{ margin: 0 0.35em 0.25em -1.4em; vertical-align: middle; }}

code {{
  background: #f6f8fa;
  padding: 0.125rem 0.25rem;
  border-radius: 3px;
  font-family: {MONO_FONT_STACK};
  font-size: 0.875em;
}}

pre {{
  background: #f6f8fa;
  padding: 1rem;
  border-radius: 6px;
  margin: 1rem 0;
  border: 1px solid #e1e4e8;
  white-space: pre-wrap;
  word-break: break-word;
  page-break-inside: avoid;
}}

pre code {{
  background: none;
  padding: 0;
  font-size: 0.875rem;
  font-family: {MONO_FONT_STACK};
}}

blockquote {{
  border-left: 4px solid #dfe2e5;
  margin: 1rem 0;
  padding: 0.5rem 1rem;
  background: #f6f8fa;
  color: #6a737d;
}}

blockquote > :last-child {{ margin-bottom: 0; }}

table {{
  border-collapse: collapse;
  width: 100%;
  margin: 1rem 0;
  page-break-inside: auto;
}}

tr {{ page-break-inside: avoid; }}

th, td {{
  border: 1px solid #e1e4e8;
  padding: 0.5rem;
  text-align: left;
}}

th {{
  background: #f6f8fa;
  font-weight: 600;
}}

a {{
  color: #0366d6;
  text-decoration: none;
}}

img {{
  max-width: 100%;
  height: auto;
}}

hr {{
  border: none;
  border-top: 1px solid #e1e4e8;
  margin: 2rem 0;
}}

del {{ color: #6a737d; }}
""".strip()


def build_style_sheet(remote_fonts: bool = REMOTE_FONTS) -> str:
    if remote_fonts:
        # @import must come before every other rule.
        return f"{GOOGLE_FONTS_IMPORT}\n\n{BASE_CSS}"
    return BASE_CSS


def wrap(html_fragment: str, *, remote_fonts: bool = REMOTE_FONTS) -> RenderedDocument:
    """Wrap a Markdown-derived fragment in the print template.

    The fragment is embedded as-is; escaping user text is the Markdown
    renderer's job.
    """
    return RenderedDocument(html_body=html_fragment or "", style_sheet=build_style_sheet(remote_fonts))
