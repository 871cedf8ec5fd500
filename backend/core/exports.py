"""CSV download helper shared by the export endpoints."""
import csv

from django.http import HttpResponse
from django.utils import timezone


def csv_response(basename, header, rows):
    """Build an attachment response named <basename>-<date>.csv"""
    filename = f"{basename}-{timezone.localdate().isoformat()}.csv"
    response = HttpResponse(content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(header)
    for row in rows:
        writer.writerow(['' if value is None else value for value in row])
    return response
