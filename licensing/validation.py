"""
Validation of proposed license terms.

Runs before conflict detection. Every problem found is collected into one
ValidationError so the caller can show them all at once.
"""
import re
from datetime import date, datetime

from django.conf import settings

from .choices import LicenseType
from .exceptions import ValidationError
from .scope import GLOBAL, DateRange, LicenseScope
from .terms import LicenseDraft

MAX_REV_SHARE_BPS = 10000

TERRITORY_CODE_RE = re.compile(r'^[A-Z]{2}$')


def parse_date(value, field_name, errors):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            pass
    errors.setdefault(field_name, []).append('Must be a date in YYYY-MM-DD format')
    return None


def _parse_int(value, field_name, errors):
    if isinstance(value, bool):
        errors.setdefault(field_name, []).append('Must be an integer')
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        errors.setdefault(field_name, []).append('Must be an integer')
        return None
    if parsed != value and not isinstance(value, str):
        errors.setdefault(field_name, []).append('Must be a whole number')
        return None
    return parsed


def _months_between(start, end):
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if end.day > start.day:
        months += 1
    return months


SCOPE_SECTIONS = ('media', 'placement', 'geographic', 'exclusivity', 'cutdowns', 'attribution')

# (section, key) pairs that must hold a list when present
SCOPE_LIST_FIELDS = (
    ('geographic', 'territories'),
    ('exclusivity', 'competitors'),
    ('cutdowns', 'aspect_ratios'),
)


def _check_scope_shape(raw_scope, errors):
    """
    Check the JSON shape of a scope payload before it is parsed.

    Returns the scope with malformed parts dropped, so parsing never sees
    a non-object section. Problems are recorded in ``errors``.
    """
    if not isinstance(raw_scope, dict):
        errors.setdefault('scope', []).append('Scope must be an object')
        return {}

    cleaned = dict(raw_scope)
    for section in SCOPE_SECTIONS:
        value = cleaned.get(section)
        if value in (None, ''):
            continue
        if not isinstance(value, dict):
            errors.setdefault(f'scope.{section}', []).append('Must be an object')
            cleaned[section] = {}

    for section, key in SCOPE_LIST_FIELDS:
        value = cleaned.get(section, {}).get(key) if cleaned.get(section) else None
        if value is not None and not isinstance(value, (list, tuple)):
            errors.setdefault(f'scope.{section}.{key}', []).append('Must be a list')
            cleaned[section] = {k: v for k, v in cleaned[section].items() if k != key}

    category = (cleaned.get('exclusivity') or {}).get('category')
    if category is not None and not isinstance(category, str):
        errors.setdefault('scope.exclusivity.category', []).append('Must be a string')
        cleaned['exclusivity'] = {k: v for k, v in cleaned['exclusivity'].items() if k != 'category'}

    return cleaned


def validate_scope(scope: LicenseScope, license_type, errors):
    territories = scope.territories

    if GLOBAL in territories and len(territories) > 1:
        errors.setdefault('scope.geographic.territories', []).append(
            'GLOBAL cannot be combined with specific territories'
        )

    invalid = sorted(t for t in territories if t != GLOBAL and not TERRITORY_CODE_RE.match(t))
    if invalid:
        errors.setdefault('scope.geographic.territories', []).append(
            f"Invalid ISO country code(s): {', '.join(invalid)}"
        )

    if license_type == LicenseType.EXCLUSIVE_TERRITORY and not territories:
        errors.setdefault('scope.geographic.territories', []).append(
            'Territory-exclusive licenses must name at least one territory'
        )

    if scope.competitors and not scope.exclusivity_category:
        errors.setdefault('scope.exclusivity.category', []).append(
            'A competitive category is required when competitors are excluded'
        )

    if scope.cutdowns.max_duration is not None:
        if not isinstance(scope.cutdowns.max_duration, int) or scope.cutdowns.max_duration <= 0:
            errors.setdefault('scope.cutdowns.max_duration', []).append('Must be a positive number of seconds')


def validate_candidate(draft: LicenseDraft, max_term_months=None):
    """Raise ValidationError if an already-built draft breaks an invariant."""
    errors = {}
    _check_draft(draft, errors, max_term_months)
    if errors:
        raise ValidationError(errors=errors)
    return draft


def _check_draft(draft, errors, max_term_months=None):
    if max_term_months is None:
        max_term_months = getattr(settings, 'LICENSING_MAX_TERM_MONTHS', 120)

    if draft.license_type not in LicenseType.values:
        errors.setdefault('license_type', []).append(
            f"Must be one of: {', '.join(LicenseType.values)}"
        )

    term = draft.term
    if term.start >= term.end:
        errors.setdefault('end_date', []).append('End date must be after start date')
    elif _months_between(term.start, term.end) > max_term_months:
        errors.setdefault('end_date', []).append(
            f"License term cannot exceed {max_term_months} months"
        )

    if draft.fee_cents < 0:
        errors.setdefault('fee_cents', []).append('Fee cannot be negative')

    if not 0 <= draft.rev_share_bps <= MAX_REV_SHARE_BPS:
        errors.setdefault('rev_share_bps', []).append(
            f"Revenue share must be between 0 and {MAX_REV_SHARE_BPS} basis points"
        )

    validate_scope(draft.scope, draft.license_type, errors)


def build_draft(data, max_term_months=None) -> LicenseDraft:
    """
    Parse and validate a raw candidate payload into a LicenseDraft.

    Expected keys: asset_id, brand_id, license_type, start_date, end_date,
    fee_cents, rev_share_bps, scope, auto_renew.
    """
    errors = {}

    for required in ('asset_id', 'brand_id', 'license_type', 'start_date', 'end_date'):
        if data.get(required) in (None, ''):
            errors.setdefault(required, []).append('This field is required')

    start = parse_date(data['start_date'], 'start_date', errors) if data.get('start_date') else None
    end = parse_date(data['end_date'], 'end_date', errors) if data.get('end_date') else None
    fee_cents = _parse_int(data.get('fee_cents', 0), 'fee_cents', errors)
    rev_share_bps = _parse_int(data.get('rev_share_bps', 0), 'rev_share_bps', errors)

    raw_scope = _check_scope_shape(data.get('scope') or {}, errors)

    if errors:
        raise ValidationError(errors=errors)

    draft = LicenseDraft(
        asset_id=data['asset_id'],
        brand_id=data['brand_id'],
        license_type=data['license_type'],
        term=DateRange(start, end),
        scope=LicenseScope.from_dict(raw_scope),
        fee_cents=fee_cents,
        rev_share_bps=rev_share_bps,
        auto_renew=bool(data.get('auto_renew', False)),
    )

    _check_draft(draft, errors, max_term_months)
    if errors:
        raise ValidationError(errors=errors)
    return draft
