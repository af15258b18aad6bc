"""Read-only scripts evaluated inside a rendered page.

Only the scripts named by :class:`ExtractionScript` can be evaluated; each
has a fixed return shape that :func:`parse_result` checks before anything
else sees the data. Neither script mutates the page, and both tolerate
cross-origin stylesheets whose rules cannot be read.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

from ..io.models import STRUCTURAL_ORIGINS

MAX_STYLE_VARIABLES = 100
MAX_ROLE_VALUES = 5


class ExtractionScript(str, Enum):
    STYLE_VARIABLES = "style-variables"
    ROLE_COLORS = "role-colors"


ROLE_SELECTORS: Dict[str, List[str]] = {
    "logo": [
        '[class*="logo"]',
        "#logo",
        'header img[src*="logo"]',
        "header svg",
        'a[href="/"] img',
        '[aria-label*="logo" i]',
    ],
    "call-to-action": [
        'button[class*="primary"]',
        'a[class*="cta"]',
        'button[class*="cta"]',
        '[class*="hero"] button',
        '[class*="hero"] a[href]',
        'button[class*="btn-primary"]',
        ".btn-primary",
    ],
    "navigation": [
        "nav",
        "header",
        '[class*="nav"]',
        '[class*="header"]',
        '[role="navigation"]',
    ],
    "heading": [
        "h1",
        "h2",
        ".hero h1",
        ".hero h2",
        '[class*="title"]',
    ],
    "accent": [
        "a:not(nav a)",
        '[class*="accent"]',
        '[class*="highlight"]',
        '[class*="badge"]',
    ],
}

_STYLE_VARIABLES_SOURCE = """
(() => {
  const computed = getComputedStyle(document.documentElement);
  const result = { found: false, colors: {} };
  const names = [];
  for (const sheet of Array.from(document.styleSheets)) {
    let rules;
    try {
      rules = sheet.cssRules;
    } catch (e) {
      continue;
    }
    for (const rule of Array.from(rules || [])) {
      if (rule.type !== 1) continue;
      const matches = rule.cssText.match(/--[\\w-]+/g);
      if (matches) names.push(...matches);
    }
  }
  const isColor = (v) =>
    /^#([0-9a-f]{3}|[0-9a-f]{4}|[0-9a-f]{6}|[0-9a-f]{8})$/i.test(v) ||
    /^(rgba?|hsla?|oklch)\\s*\\(/i.test(v);
  for (const name of Array.from(new Set(names)).slice(0, %(limit)d)) {
    const value = computed.getPropertyValue(name).trim();
    if (value && isColor(value)) {
      result.colors[name] = value;
      result.found = true;
    }
  }
  return result;
})()
"""

_ROLE_COLORS_SOURCE = """
(() => {
  const selectors = %(selectors)s;
  const empty = (v) => !v || v === "transparent" || v === "none" || v === "rgba(0, 0, 0, 0)";
  const result = {};
  for (const [role, list] of Object.entries(selectors)) {
    const seen = new Set();
    for (const selector of list) {
      let elements;
      try {
        elements = document.querySelectorAll(selector);
      } catch (e) {
        continue;
      }
      for (const el of Array.from(elements)) {
        const style = getComputedStyle(el);
        for (const value of [style.backgroundColor, style.color, style.borderColor]) {
          if (!empty(value)) seen.add(value);
        }
        if (el.tagName.toLowerCase() === "svg" || el.closest("svg")) {
          if (!empty(style.fill)) seen.add(style.fill);
          if (!empty(style.stroke)) seen.add(style.stroke);
        }
      }
    }
    result[role] = Array.from(seen).slice(0, %(limit)d);
  }
  return result;
})()
"""

SCRIPT_SOURCES: Dict[ExtractionScript, str] = {
    ExtractionScript.STYLE_VARIABLES: _STYLE_VARIABLES_SOURCE % {"limit": MAX_STYLE_VARIABLES},
    ExtractionScript.ROLE_COLORS: _ROLE_COLORS_SOURCE
    % {"selectors": json.dumps(ROLE_SELECTORS), "limit": MAX_ROLE_VALUES},
}


@dataclass(slots=True)
class StyleVariables:
    """Color-valued custom properties declared on the document root."""

    found: bool = False
    colors: Dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class RoleColors:
    """Raw computed color strings per structural role."""

    values: Dict[str, List[str]] = field(default_factory=dict)


def script_source(script: ExtractionScript) -> str:
    return SCRIPT_SOURCES[ExtractionScript(script)]


def parse_result(script: ExtractionScript, raw: Any) -> StyleVariables | RoleColors:
    """Check *raw* against the documented shape of *script*, dropping anything else."""
    script = ExtractionScript(script)
    if script is ExtractionScript.STYLE_VARIABLES:
        return _parse_style_variables(raw)
    return _parse_role_colors(raw)


def _parse_style_variables(raw: Any) -> StyleVariables:
    if not isinstance(raw, dict):
        return StyleVariables()
    colors = raw.get("colors")
    if not isinstance(colors, dict):
        return StyleVariables()
    cleaned = {
        name: value.strip()
        for name, value in list(colors.items())[:MAX_STYLE_VARIABLES]
        if isinstance(name, str) and name.startswith("--") and isinstance(value, str) and value.strip()
    }
    return StyleVariables(found=bool(cleaned), colors=cleaned)


def _parse_role_colors(raw: Any) -> RoleColors:
    values: Dict[str, List[str]] = {origin.value: [] for origin in STRUCTURAL_ORIGINS}
    if not isinstance(raw, dict):
        return RoleColors(values)
    for role in values:
        entries = raw.get(role)
        if not isinstance(entries, list):
            continue
        values[role] = [entry for entry in entries if isinstance(entry, str)][:MAX_ROLE_VALUES]
    return RoleColors(values)
