"""
Maintenance page templates.

Every template consumes the same RenderContext. Templates are looked up by
id in a TemplateRegistry that always holds the default template; unknown ids
resolve to the default.
"""

import logging
from dataclasses import asdict, dataclass, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from jinja2 import Environment, PackageLoader, select_autoescape
from markupsafe import Markup, escape

from maintenance_gate.services.settings_store import (
    DEFAULT_TEMPLATE_ID,
    FIELDS_BY_NAME,
    SettingsSnapshot,
)
from maintenance_gate.utils.sanitize import normalize_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderContext:
    """Fixed variable contract handed to every maintenance template."""
    mode: str
    title: str
    message: str
    theme_mode: str
    bg_color: str
    text_color: str
    accent_color: str
    logo_url: str
    show_logo: bool
    show_social: bool
    show_contact: bool
    contact_email: str
    contact_phone: str
    social_facebook: str
    social_twitter: str
    social_instagram: str
    countdown_enabled: bool
    countdown_date: str
    custom_css: str
    site_name: str

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _default_of(name: str) -> Any:
    return FIELDS_BY_NAME[name].default


def _text(value: Any, fallback: str = "") -> str:
    if value is None:
        return fallback
    text = str(value)
    return text if text else fallback


def build_render_context(snapshot: SettingsSnapshot, site_name: str = "", admin_email: str = "") -> RenderContext:
    """Build the template variables from a settings snapshot.

    Pure and total: every field has a value. Blank colors fall back to the
    schema defaults and a blank contact email falls back to ``admin_email``.
    """
    return RenderContext(
        mode=_text(snapshot.mode, _default_of("mode")),
        title=_text(snapshot.title, _default_of("title")),
        message=_text(snapshot.message),
        theme_mode=_text(snapshot.theme_mode, _default_of("theme_mode")),
        bg_color=_text(snapshot.bg_color, _default_of("bg_color")),
        text_color=_text(snapshot.text_color, _default_of("text_color")),
        accent_color=_text(snapshot.accent_color, _default_of("accent_color")),
        logo_url=_text(snapshot.logo_url),
        show_logo=bool(snapshot.show_logo),
        show_social=bool(snapshot.show_social),
        show_contact=bool(snapshot.show_contact),
        contact_email=_text(snapshot.contact_email, admin_email or ""),
        contact_phone=_text(snapshot.contact_phone),
        social_facebook=_text(snapshot.social_facebook),
        social_twitter=_text(snapshot.social_twitter),
        social_instagram=_text(snapshot.social_instagram),
        countdown_enabled=bool(snapshot.countdown_enabled),
        countdown_date=_text(snapshot.countdown_date),
        custom_css=_text(snapshot.custom_css),
        site_name=_text(site_name),
    )


def restrict_to_plan(context: RenderContext, feature_enabled: Callable[[str], bool]) -> RenderContext:
    """Blank out premium fields the current plan does not unlock."""
    changes: Dict[str, Any] = {}
    if not feature_enabled("custom_css"):
        changes["custom_css"] = ""
    if not feature_enabled("countdown_timer"):
        changes["countdown_enabled"] = False
    if not feature_enabled("social_links"):
        changes["show_social"] = False
    return replace(context, **changes) if changes else context


def _paragraphs(value: str) -> Markup:
    """Escape text and turn blank-line separated blocks into paragraphs."""
    blocks = [block.strip() for block in str(value or "").replace("\r\n", "\n").split("\n\n")]
    html = []
    for block in blocks:
        if not block:
            continue
        lines = [str(escape(line)) for line in block.split("\n")]
        html.append("<p>" + "<br>\n".join(lines) + "</p>")
    return Markup("\n".join(html))


def _long_date(value: str) -> str:
    """Format an ISO date as "January 1, 2026"; unparsable input is returned as-is."""
    try:
        parsed = datetime.fromisoformat(str(value).strip())
    except ValueError:
        return str(value)
    return f"{parsed.strftime('%B')} {parsed.day}, {parsed.year}"


def create_environment() -> Environment:
    env = Environment(
        loader=PackageLoader("maintenance_gate", "templates"),
        autoescape=select_autoescape(["html"]),
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["paragraphs"] = _paragraphs
    env.filters["long_date"] = _long_date
    env.filters["link"] = lambda value: normalize_url(value) or ""
    return env


@dataclass(frozen=True)
class MaintenanceTemplate:
    id: str
    name: str
    description: str
    filename: str
    pro: bool = False

    def render(self, context: RenderContext, environment: Environment) -> str:
        return environment.get_template(self.filename).render(**context.as_dict())

    def describe(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description, "pro": self.pro}


BUILTIN_TEMPLATES = (
    MaintenanceTemplate("modern", "Modern", "Clean and modern design with gradient backgrounds", "modern.html"),
    MaintenanceTemplate("minimal", "Minimal", "Simple and elegant minimalist design", "minimal.html"),
    MaintenanceTemplate("corporate", "Corporate", "Professional corporate style", "corporate.html"),
    MaintenanceTemplate(
        "payment-required",
        "Payment Required",
        "Special template for non-payment situations",
        "payment_required.html",
    ),
)

FALLBACK_PAGE = (
    "<!DOCTYPE html>\n"
    "<html><head><meta charset=\"utf-8\"><meta name=\"robots\" content=\"noindex, nofollow\">"
    "<title>{title}</title></head>"
    "<body><h1>{title}</h1>{message}</body></html>\n"
)


class TemplateRegistry:
    """Template id -> MaintenanceTemplate, with a default that cannot be removed."""

    def __init__(self, environment: Optional[Environment] = None, default_id: str = DEFAULT_TEMPLATE_ID):
        self.environment = environment or create_environment()
        self.default_id = default_id
        self._templates: Dict[str, MaintenanceTemplate] = {}
        for template in BUILTIN_TEMPLATES:
            self.register(template)
        if default_id not in self._templates:
            raise ValueError(f"Default template '{default_id}' is not registered")

    def register(self, template: MaintenanceTemplate) -> None:
        self._templates[template.id] = template

    def get(self, template_id: Optional[str]) -> Optional[MaintenanceTemplate]:
        return self._templates.get(template_id or "")

    def resolve(self, template_id: Optional[str]) -> MaintenanceTemplate:
        template = self.get(template_id)
        if template is None:
            if template_id:
                logger.info(f"Unknown template '{template_id}', using '{self.default_id}'")
            return self._templates[self.default_id]
        return template

    def catalog(self) -> List[Dict[str, Any]]:
        return [template.describe() for template in self._templates.values()]

    def render(self, template_id: Optional[str], context: RenderContext) -> str:
        """Render the requested template, falling back to the default, then to a bare page."""
        template = self.resolve(template_id)
        try:
            return template.render(context, self.environment)
        except Exception:
            logger.exception(f"Template '{template.id}' failed to render")

        if template.id != self.default_id:
            try:
                return self._templates[self.default_id].render(context, self.environment)
            except Exception:
                logger.exception(f"Default template '{self.default_id}' failed to render")

        return self.render_fallback(context)

    @staticmethod
    def render_fallback(context: RenderContext) -> str:
        return FALLBACK_PAGE.format(
            title=escape(context.title),
            message=_paragraphs(context.message),
        )
