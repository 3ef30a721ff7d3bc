from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..actions import ActionLog
from .files import write_file

logger = logging.getLogger(__name__)

COMPONENT = "theme"

GTK_THEME = "Breeze-Dark"
ICON_THEME = "Papirus-Dark"

ACCENT_COLORS = {
    "Raven": "#4a5d4a",
    "Triste": "#5d4a4a",
}
DEFAULT_ACCENT = "#5d4a4a"

SESSIONS = {
    "openbox": "openbox-session",
    "i3": "i3",
    # dwm is provided by the i3 stack until it is built from source
    "dwm": "i3",
}

_TOKEN_RE = re.compile(r"@([A-Z][A-Z0-9_]*)@")


@dataclass(frozen=True)
class TemplateSpec:
    name: str
    dest: str
    scope: str
    fallback: str
    mode: Optional[int] = None
    needs_session: bool = False


_GTK3_MIN = "[Settings]\ngtk-theme-name=@THEME_NAME@\ngtk-icon-theme-name=@ICON_THEME@\n"
_GTK2_MIN = 'gtk-theme-name="@THEME_NAME@"\ngtk-icon-theme-name="@ICON_THEME@"\n'

TEMPLATE_SET = (
    TemplateSpec("system/gtk-3.0/settings.ini", "etc/gtk-3.0/settings.ini", "system", _GTK3_MIN),
    TemplateSpec("system/gtk-2.0/gtkrc", "etc/gtk-2.0/gtkrc", "system", _GTK2_MIN),
    TemplateSpec(
        "system/qt5ct/qt5ct.conf",
        "etc/xdg/qt5ct/qt5ct.conf",
        "system",
        "[Appearance]\nicon_theme=@ICON_THEME@\nstyle=Breeze\n",
    ),
    TemplateSpec("user/gtk-3.0/settings.ini", "home/@USERNAME@/.config/gtk-3.0/settings.ini", "user", _GTK3_MIN),
    TemplateSpec("user/gtkrc-2.0", "home/@USERNAME@/.gtkrc-2.0", "user", _GTK2_MIN),
    TemplateSpec(
        "user/tint2rc",
        "home/@USERNAME@/.config/tint2/tint2rc",
        "user",
        "panel_items = LTSC\npanel_position = bottom center horizontal\nbackground_color = @ACCENT_COLOR@ 70\n",
    ),
    TemplateSpec(
        "user/xinitrc",
        "home/@USERNAME@/.xinitrc",
        "user",
        "#!/bin/sh\nsetxkbmap @KEYMAP@ 2>/dev/null || true\nexec @SESSION@\n",
        mode=0o755,
        needs_session=True,
    ),
)


@dataclass
class RenderResult:
    written: List[str] = field(default_factory=list)
    fallbacks: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def user_files(self) -> List[str]:
        return [p for p in self.written if p.startswith("home/")]


def default_templates_dir() -> str:
    return str(Path(__file__).resolve().parents[1] / "assets" / "templates")


def theme_tokens(*, username: str, keymap: str, window_manager: str, openbox_theme: str = "") -> Dict[str, str]:
    return {
        "THEME_NAME": GTK_THEME,
        "ICON_THEME": ICON_THEME,
        "ACCENT_COLOR": ACCENT_COLORS.get(openbox_theme, DEFAULT_ACCENT),
        "USERNAME": username,
        "KEYMAP": keymap,
        "SESSION": SESSIONS.get(window_manager, ""),
    }


def render_template(text: str, tokens: Mapping[str, str]) -> str:
    """Replace ``@TOKEN@`` markers; unknown markers are left as they are."""
    return _TOKEN_RE.sub(lambda m: tokens.get(m.group(1), m.group(0)), text)


def render_templates(
    *,
    templates_dir: str,
    target_root: str,
    tokens: Mapping[str, str],
    actions: ActionLog,
    dry_run: bool = False,
) -> RenderResult:
    """Render the fixed template set into the target.

    A template missing from ``templates_dir`` is never fatal: a warning is
    recorded and the built-in minimal content is written instead.
    """

    result = RenderResult()
    base = Path(templates_dir)

    for tpl in TEMPLATE_SET:
        dest = render_template(tpl.dest, tokens)
        if tpl.needs_session and not tokens.get("SESSION"):
            result.skipped.append(dest)
            continue

        src = base / tpl.name
        try:
            text = src.read_text(encoding="utf-8")
        except OSError:
            actions.warn(COMPONENT, f"Template {tpl.name} not found in {templates_dir}; using built-in default")
            text = tpl.fallback
            result.fallbacks.append(tpl.name)

        write_file(target_root, dest, render_template(text, tokens), dry_run=dry_run, mode=tpl.mode)
        result.written.append(dest)

    actions.record(
        COMPONENT,
        f"Rendered {len(result.written)} theme files ({len(result.fallbacks)} from built-in defaults)",
    )
    return result
