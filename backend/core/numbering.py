"""Sequential document numbers of the form PREFIX-YYYY-NNNN."""
from django.utils import timezone


def next_document_number(model, field, prefix, width=4):
    """
    Return the next number for the current year, one above the highest
    existing number with the same prefix and year.
    """
    year = timezone.localdate().year
    stem = f"{prefix}-{year}-"
    existing = model.objects.filter(**{f"{field}__startswith": stem}).values_list(field, flat=True)
    highest = 0
    for number in existing:
        suffix = number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return f"{stem}{str(highest + 1).zfill(width)}"
