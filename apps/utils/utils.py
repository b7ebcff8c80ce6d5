import uuid

from django.conf import settings
from django.utils import timezone

from apps.utils.exceptions import ReferenceGenerationError


def now():
    return timezone.now()


def generate_code(prefix=""):
    return prefix + uuid.uuid4().hex[:6].upper()


def date_stamp(moment=None):
    moment = moment or now()
    return timezone.localtime(moment).strftime("%Y%m%d")


def random_reference(prefix: str, moment=None) -> str:
    """
    PREFIX-YYYYMMDD-XXXXXX (six random uppercase hex chars).
    """
    return generate_code(f"{prefix}-{date_stamp(moment)}-")


def unique_random_reference(model, prefix: str, field="reference_number", moment=None) -> str:
    max_attempts = getattr(settings, "REFERENCE_NUMBER_MAX_ATTEMPTS", 5)
    for _ in range(max_attempts):
        candidate = random_reference(prefix, moment)
        if not model.objects.filter(**{field: candidate}).exists():
            return candidate
    raise ReferenceGenerationError(
        f"Could not generate a unique {prefix} reference after {max_attempts} attempts"
    )


def daily_sequence_reference(model, prefix: str, field="reference_number", moment=None) -> str:
    """
    PREFIX-YYYYMMDD-NNNN, numbered per calendar day.
    Skips forward past any number already taken.
    """
    day_prefix = f"{prefix}-{date_stamp(moment)}-"
    taken = model.objects.filter(**{f"{field}__startswith": day_prefix})
    sequence = taken.count() + 1

    max_attempts = getattr(settings, "REFERENCE_NUMBER_MAX_ATTEMPTS", 5)
    for _ in range(max_attempts):
        candidate = f"{day_prefix}{sequence:04d}"
        if not taken.filter(**{field: candidate}).exists():
            return candidate
        sequence += 1
    raise ReferenceGenerationError(
        f"Could not generate a unique {prefix} sequence number after {max_attempts} attempts"
    )


def user_or_none(actor):
    """
    Anonymous users and plain ids are not stored as FK values.
    """
    if actor is None or not getattr(actor, "is_authenticated", False):
        return None
    return actor
