"""
File Management Utilities

Writes rewritten documents into the output directory. The output tree mirrors
the source tree: `<source>/blog/post.html` is saved as `<output>/blog/post.html`.
"""

import os
import logging
from pathlib import Path
from typing import Optional, Dict, Any


class FileManager:
    def __init__(self, base_output_dir: str = "output"):
        self.base_output_dir = Path(base_output_dir)
        self.logger = logging.getLogger(__name__)

        self.base_output_dir.mkdir(parents=True, exist_ok=True)
        self._root = self.base_output_dir.resolve()
        self.logger.info(f"Output directory: {self._root}")

    def get_output_path(self, relative_path: str) -> str:
        """
        Output path of a source document.

        Raises:
            ValueError: the path would land outside the output directory
        """
        target = (self._root / relative_path.replace('\\', '/').lstrip('/')).resolve()
        if target == self._root or self._root not in target.parents:
            raise ValueError(f"Document path escapes output directory: {relative_path}")
        return str(target)

    def save_document(self, html_content: str, relative_path: str) -> Optional[str]:
        """
        Save a rewritten document next to its siblings in the output tree.

        The file is written under a temporary name and moved into place, so a
        reader never sees half a document.

        Returns:
            Path to saved file, or None if save failed
        """
        try:
            output_path = Path(self.get_output_path(relative_path))
            output_path.parent.mkdir(parents=True, exist_ok=True)
            partial = output_path.with_name(output_path.name + ".partial")
            partial.write_text(html_content, encoding='utf-8')
            os.replace(partial, output_path)
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to save document {relative_path}: {e}")
            return None

        self.logger.info(f"Saved document ({output_path.stat().st_size} bytes): {relative_path}")
        return str(output_path)

    def get_output_stats(self) -> Dict[str, Any]:
        html_files = [p for p in self._root.rglob('*.html') if p.is_file()]
        return {
            'html_files': len(html_files),
            'total_html_size': sum(p.stat().st_size for p in html_files),
            'output_dir': str(self.base_output_dir),
        }
