"""Normalization of raw POS and shift documents.

Submodules:
    fields: accessor tables and the generic field normalizer
    tickets: ticket/order/line expansion into NormalizedLine
    shifts: shift documents into NormalizedShift
    cleaning: text and number cleaning helpers
"""

from daily_ops.normalize.fields import FieldSpec, extract_field, flatten, normalize_record
from daily_ops.normalize.shifts import NormalizedShift, normalize_shift
from daily_ops.normalize.tickets import NormalizedLine, expand_lines, expand_tickets

__all__ = [
    "FieldSpec",
    "NormalizedLine",
    "NormalizedShift",
    "expand_lines",
    "expand_tickets",
    "extract_field",
    "flatten",
    "normalize_record",
    "normalize_shift",
]
