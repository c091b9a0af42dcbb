"""
Document compiler for streamed render results

Writes the output of a simulated stream to disk:
    - index.html   standalone page with the finalized render
    - frames.jsonl one JSON object per appended chunk (what a UI would
                   have shown at that moment)
"""

import html
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..models.render import RenderResult
from .log import LOG


PAGE_STYLE = """
        body { font-family: system-ui, sans-serif; max-width: 48rem; margin: 2rem auto; line-height: 1.5; }
        pre { background: #272822; color: #f8f8f2; padding: 1rem; overflow-x: auto; }
        code { font-family: ui-monospace, monospace; }
        blockquote { border-left: 4px solid #ccc; margin-left: 0; padding-left: 1rem; color: #555; }
        table { border-collapse: collapse; }
        th, td { border: 1px solid #ccc; padding: 0.25rem 0.5rem; }
        .footnote { font-size: 0.9em; color: #555; }
"""


def frame_summarize(index: int, chunk: str, result: RenderResult) -> Dict[str, Any]:
    """
    JSON-ready summary of one chunk's render result

    Args:
        index: Chunk sequence number (0-based)
        chunk: Text appended in this step
        result: RenderResult returned by Session.append()
    """
    return {
        'chunk': index,
        'appended': chunk,
        'checkpoint': result.checkpoint.offset if result.checkpoint else 0,
        'settled': result.checkpoint.token_count if result.checkpoint else 0,
        'nodes': [
            {
                'key': frame.node.key,
                'component': frame.node.component,
                'provisional': frame.node.provisional,
                'placeholder': frame.node.placeholder,
                'reveal': frame.reveal.value,
                'html': frame.node.html,
            }
            for frame in result.nodes
        ],
    }


class DocumentCompiler:
    """
    Writes the final render and the per-chunk frames of a streamed document

    Responsibilities:
    - Wrap the finalized HTML in a standalone page
    - Serialize per-chunk frames as JSON lines
    - Report what was written
    """

    def __init__(
        self,
        final_html: str,
        frames: List[Dict[str, Any]],
        output_dir: str,
        title: str = "streammark",
        stylesheet: Optional[str] = None,
    ) -> None:
        """
        Initialize compiler

        Args:
            final_html: HTML of the finalized document
            frames: Frame summaries (see frame_summarize)
            output_dir: Directory for compiled output
            title: Page title
            stylesheet: CSS replacing the default page style
        """
        self.final_html = final_html
        self.frames = frames
        self.output_dir = Path(output_dir)
        self.title = title
        self.stylesheet = PAGE_STYLE if stylesheet is None else stylesheet

    def compile(self) -> Dict[str, Any]:
        """
        Write index.html and frames.jsonl

        Returns:
            dict with compilation results and statistics
        """
        LOG("Writing output...", level=2)
        self.output_dir.mkdir(parents=True, exist_ok=True)

        output_file = self.output_dir / "index.html"
        output_file.write_text(self.htmlDocument_build(self.final_html), encoding='utf-8')
        LOG(f"Wrote {output_file}", level=2)

        frames_file = self.output_dir / "frames.jsonl"
        with open(frames_file, 'w', encoding='utf-8') as f:
            for frame in self.frames:
                f.write(json.dumps(frame, ensure_ascii=False) + "\n")
        LOG(f"Wrote {len(self.frames)} frames to {frames_file}", level=2)

        return {
            'status': True,
            'output_file': str(output_file),
            'frames_file': str(frames_file),
            'frame_count': len(self.frames),
        }

    def htmlDocument_build(self, content: str) -> str:
        """
        Build complete HTML document around the rendered content

        Args:
            content: Rendered markdown HTML

        Returns:
            Complete HTML document
        """
        return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{html.escape(self.title)}</title>
    <style>{self.stylesheet}    </style>
</head>
<body>
    <main class="markdown-body">
{content}
    </main>
</body>
</html>
"""
