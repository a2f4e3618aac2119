import json
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session, sessionmaker

from maintenance_gate.models.setting import Setting
from maintenance_gate.utils import sanitize
from maintenance_gate.utils.exceptions import UnknownSettingError

logger = logging.getLogger(__name__)

SETTING_PREFIX = "mg_"

MODE_MAINTENANCE = "maintenance"
MODE_CONSTRUCTION = "construction"
MODE_PAYMENT_OVERDUE = "payment_overdue"
MODES = (MODE_MAINTENANCE, MODE_CONSTRUCTION, MODE_PAYMENT_OVERDUE)

THEME_MODES = ("dark", "light")

DEFAULT_TEMPLATE_ID = "modern"


@dataclass(frozen=True)
class SettingField:
    """One row of the settings schema."""
    name: str
    value_type: str  # bool | text | textarea | css | enum | list | color | url | email
    default: Any
    description: str = ""
    choices: Tuple[str, ...] = ()

    @property
    def key(self) -> str:
        return f"{SETTING_PREFIX}{self.name}"


SETTING_FIELDS: Tuple[SettingField, ...] = (
    # General
    SettingField("enabled", "bool", False, "Master switch for the maintenance page"),
    SettingField("mode", "enum", MODE_MAINTENANCE, "Presentation category", MODES),
    SettingField("template", "text", DEFAULT_TEMPLATE_ID, "Template id used for the maintenance page"),
    SettingField("title", "text", "Under Maintenance", "Page heading"),
    SettingField(
        "message",
        "textarea",
        "We're currently performing scheduled maintenance. We'll be back shortly!",
        "Page body text",
    ),

    # Design
    SettingField("theme_mode", "enum", "dark", "Dark or light base theme", THEME_MODES),
    SettingField("bg_color", "color", "#0b0f12", "Background color"),
    SettingField("text_color", "color", "#ffffff", "Text color"),
    SettingField("accent_color", "color", "#a3e635", "Accent color"),
    SettingField("logo_url", "url", "", "Logo image URL"),
    SettingField("show_logo", "bool", True, "Show the logo when a logo URL is set"),
    SettingField("custom_css", "css", "", "Extra CSS appended to the template"),

    # Access
    SettingField("bypass_roles", "list", ("administrator",), "Roles that see the real site"),
    SettingField("bypass_ips", "list", (), "Client IPs that see the real site (exact match)"),

    # Contact
    SettingField("show_contact", "bool", False, "Show contact details"),
    SettingField("contact_email", "email", "", "Contact email address"),
    SettingField("contact_phone", "text", "", "Contact phone number"),
    SettingField("show_social", "bool", False, "Show social links"),
    SettingField("social_facebook", "text", "", "Facebook link"),
    SettingField("social_twitter", "text", "", "Twitter link"),
    SettingField("social_instagram", "text", "", "Instagram link"),

    # Countdown
    SettingField("countdown_enabled", "bool", False, "Show the expected return date"),
    SettingField("countdown_date", "text", "", "Expected return date"),
)

FIELDS_BY_NAME: Dict[str, SettingField] = {f.name: f for f in SETTING_FIELDS}


@dataclass(frozen=True)
class SettingsSnapshot:
    """Complete, typed view of every public setting at one point in time."""
    enabled: bool = False
    mode: str = MODE_MAINTENANCE
    template: str = DEFAULT_TEMPLATE_ID
    title: str = ""
    message: str = ""
    theme_mode: str = "dark"
    bg_color: str = ""
    text_color: str = ""
    accent_color: str = ""
    logo_url: str = ""
    show_logo: bool = True
    custom_css: str = ""
    bypass_roles: frozenset = field(default_factory=frozenset)
    bypass_ips: frozenset = field(default_factory=frozenset)
    show_contact: bool = False
    contact_email: str = ""
    contact_phone: str = ""
    show_social: bool = False
    social_facebook: str = ""
    social_twitter: str = ""
    social_instagram: str = ""
    countdown_enabled: bool = False
    countdown_date: str = ""

    @classmethod
    def defaults(cls) -> "SettingsSnapshot":
        return cls(**{f.name: _to_snapshot_value(f, f.default) for f in SETTING_FIELDS})


@dataclass(frozen=True)
class SettingWriteResult:
    saved: bool
    name: str
    value: Any = None
    message: str = ""


def _coerce_enum(settings_field: SettingField) -> Callable[[Any], Optional[str]]:
    def coerce(value: Any) -> Optional[str]:
        text = sanitize.sanitize_text(value).lower()
        return text if text in settings_field.choices else None
    return coerce


def _coerce_list(value: Any) -> Optional[List[str]]:
    return sanitize.sanitize_text_list(sanitize.split_list(value))


def _coerce_role_list(value: Any) -> Optional[List[str]]:
    # Session roles are compared lowercased.
    roles = [role.lower() for role in sanitize.sanitize_text_list(sanitize.split_list(value))]
    return list(dict.fromkeys(roles))


def _coerce_bool(value: Any) -> Optional[bool]:
    return sanitize.parse_bool(value, default=None)


def coercer_for(settings_field: SettingField) -> Callable[[Any], Any]:
    """Pick the sanitizer for a field.

    The key-name convention wins over the declared type: names ending in
    "color", "url" or "email" always go through the matching validator.
    """
    name = settings_field.name
    if name == "bypass_roles":
        return _coerce_role_list
    if name.endswith("color"):
        return sanitize.sanitize_hex_color
    if name.endswith("url"):
        return sanitize.normalize_url
    if name.endswith("email"):
        return sanitize.sanitize_email

    value_type = settings_field.value_type
    if value_type == "bool":
        return _coerce_bool
    if value_type == "enum":
        return _coerce_enum(settings_field)
    if value_type == "list":
        return _coerce_list
    if value_type == "textarea":
        return sanitize.sanitize_textarea
    if value_type == "css":
        return sanitize.sanitize_css
    return sanitize.sanitize_text


def _to_snapshot_value(settings_field: SettingField, value: Any) -> Any:
    if settings_field.value_type == "list":
        return frozenset(value or ())
    return value


def resolve_field(name: str) -> SettingField:
    """Look up a schema field by bare ("title") or prefixed ("mg_title") name."""
    bare = name[len(SETTING_PREFIX):] if name.startswith(SETTING_PREFIX) else name
    settings_field = FIELDS_BY_NAME.get(bare)
    if settings_field is None:
        raise UnknownSettingError(name)
    return settings_field


class SettingsStore:
    """Typed key/value settings backed by the ``mg_settings`` table.

    Public settings are validated through ``SETTING_FIELDS``. Internal keys
    (license cache, API key, job bookkeeping) are stored untyped through
    ``get_internal``/``set_internal`` and never exposed to the control API.
    """

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # ---- public settings ----

    def get(self, name: str) -> Any:
        """Get a typed setting value, or its default when unset or corrupt."""
        settings_field = resolve_field(name)
        with self._session() as db:
            row = db.query(Setting).filter(Setting.key == settings_field.key).first()
            return self._decode(settings_field, row.value if row else None)

    def set(self, name: str, value: Any, updated_by: Optional[str] = None) -> SettingWriteResult:
        """Validate and persist one setting.

        Invalid cosmetic values are not persisted and do not raise; the result
        carries ``saved=False``. Unknown names raise UnknownSettingError.
        """
        settings_field = resolve_field(name)
        coerced = coercer_for(settings_field)(value)
        if coerced is None:
            logger.info(f"Rejected value for setting {settings_field.name!r}")
            return SettingWriteResult(saved=False, name=settings_field.name, message=f"Could not save {settings_field.name}")

        with self._session() as db:
            self._upsert(db, settings_field.key, coerced, updated_by)
            db.commit()
        return SettingWriteResult(saved=True, name=settings_field.name, value=coerced)

    def set_many(self, values: Mapping[str, Any], updated_by: Optional[str] = None) -> List[SettingWriteResult]:
        """Validate each value independently and commit the valid ones together."""
        results: List[SettingWriteResult] = []
        accepted: Dict[str, Any] = {}
        for name, value in values.items():
            settings_field = resolve_field(name)
            coerced = coercer_for(settings_field)(value)
            if coerced is None:
                results.append(SettingWriteResult(saved=False, name=settings_field.name, message=f"Could not save {settings_field.name}"))
                continue
            accepted[settings_field.key] = coerced
            results.append(SettingWriteResult(saved=True, name=settings_field.name, value=coerced))

        if accepted:
            with self._session() as db:
                for key, coerced in accepted.items():
                    self._upsert(db, key, coerced, updated_by)
                db.commit()
        return results

    def snapshot(self) -> SettingsSnapshot:
        """Read every public setting in one query."""
        with self._session() as db:
            rows = db.query(Setting).filter(Setting.key.like(f"{SETTING_PREFIX}%")).all()
            stored = {row.key: row.value for row in rows}

        values = {}
        for settings_field in SETTING_FIELDS:
            decoded = self._decode(settings_field, stored.get(settings_field.key))
            values[settings_field.name] = _to_snapshot_value(settings_field, decoded)
        return SettingsSnapshot(**values)

    def all_settings(self) -> Dict[str, Dict[str, Any]]:
        """Describe every public setting (value, default, description)."""
        snapshot = self.snapshot()
        result = {}
        for settings_field in SETTING_FIELDS:
            value = getattr(snapshot, settings_field.name)
            if isinstance(value, frozenset):
                value = sorted(value)
            default = settings_field.default
            if isinstance(default, tuple):
                default = list(default)
            result[settings_field.key] = {
                "value": value,
                "default": default,
                "description": settings_field.description,
            }
        return result

    def seed_defaults(self) -> None:
        """Insert defaults for settings that have never been stored."""
        with self._session() as db:
            existing = {
                key for (key,) in db.query(Setting.key).filter(Setting.key.like(f"{SETTING_PREFIX}%")).all()
            }
            for settings_field in SETTING_FIELDS:
                if settings_field.key not in existing:
                    self._upsert(db, settings_field.key, self._default(settings_field), "system")
            db.commit()

    def reset(self, updated_by: Optional[str] = None) -> None:
        """Delete every plugin-owned public setting, then re-seed defaults."""
        with self._session() as db:
            deleted = (
                db.query(Setting)
                .filter(Setting.key.like(f"{SETTING_PREFIX}%"))
                .delete(synchronize_session=False)
            )
            for settings_field in SETTING_FIELDS:
                self._upsert(db, settings_field.key, self._default(settings_field), updated_by or "system")
            db.commit()
        logger.info(f"Settings reset to defaults ({deleted} rows cleared)")

    # ---- internal keys ----

    def get_internal(self, key: str, default: Any = None) -> Any:
        with self._session() as db:
            row = db.query(Setting).filter(Setting.key == key).first()
            if row is None or row.value is None:
                return default
            try:
                return json.loads(row.value)
            except (TypeError, ValueError):
                return default

    def set_internal(self, key: str, value: Any, updated_by: Optional[str] = None) -> None:
        self.set_internal_many({key: value}, updated_by=updated_by)

    def set_internal_many(self, values: Mapping[str, Any], updated_by: Optional[str] = None) -> None:
        with self._session() as db:
            for key, value in values.items():
                self._upsert(db, key, value, updated_by)
            db.commit()

    def delete_internal(self, *keys: str) -> int:
        if not keys:
            return 0
        with self._session() as db:
            deleted = db.query(Setting).filter(Setting.key.in_(keys)).delete(synchronize_session=False)
            db.commit()
            return int(deleted or 0)

    # ---- helpers ----

    @staticmethod
    def _default(settings_field: SettingField) -> Any:
        default = settings_field.default
        return list(default) if isinstance(default, tuple) else default

    def _decode(self, settings_field: SettingField, raw: Optional[str]) -> Any:
        if raw is None:
            return self._default(settings_field)
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Corrupt value stored for {settings_field.key}; using default")
            return self._default(settings_field)

        coerced = coercer_for(settings_field)(value)
        if coerced is None:
            return self._default(settings_field)
        return coerced

    @staticmethod
    def _upsert(db: Session, key: str, value: Any, updated_by: Optional[str]) -> Setting:
        encoded = json.dumps(value)
        row = db.query(Setting).filter(Setting.key == key).first()
        if row is None:
            row = Setting(key=key, value=encoded, updated_by=updated_by)
            db.add(row)
        else:
            row.value = encoded
            row.updated_by = updated_by
        return row
