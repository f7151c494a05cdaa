"""Debug artifacts (screenshots, HTML dumps). Best effort: failures are only logged."""

import logging
import re
import time
from pathlib import Path
from typing import Optional

import TT_Video_Crawler.src.logger

logger = logging.getLogger('TTVC.Debug')


def _slug(label: str) -> str:
    return re.sub(r'[^A-Za-z0-9_-]+', '-', label).strip('-') or 'page'


class DiagnosticSink:
    def __init__(self, debug_dir: str = 'debug'):
        self.debug_dir = Path(debug_dir)

    def _target(self, label: str, suffix: str) -> Path:
        self.debug_dir.mkdir(parents=True, exist_ok=True)
        return self.debug_dir / f"{_slug(label)}-{int(time.time() * 1000)}.{suffix}"

    async def save_screenshot(self, page, label: str = 'error-screenshot') -> Optional[Path]:
        try:
            target = self._target(label, 'png')
            await page.screenshot(path=str(target), full_page=True)
            logger.info(f"Screenshot saved: {target}")
            return target
        except Exception as e:
            logger.warning(f"⚠️ Could not save screenshot ({label}): {e}")
            return None

    def save_html(self, html: str, label: str = 'page') -> Optional[Path]:
        try:
            target = self._target(label, 'html')
            target.write_text(html or '', encoding='utf-8')
            logger.debug(f"HTML saved: {target}")
            return target
        except OSError as e:
            logger.warning(f"⚠️ Could not save HTML ({label}): {e}")
            return None
