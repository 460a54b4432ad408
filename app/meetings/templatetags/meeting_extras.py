from django import template
from django.utils.safestring import mark_safe
import bleach

register = template.Library()

# Allowed tags and attributes for meeting minutes
ALLOWED_TAGS = ['p', 'br', 'strong', 'b', 'em', 'i', 'u', 'ul', 'ol', 'li', 'a', 'span', 'div', 'h3', 'h4', 'blockquote']
ALLOWED_ATTRS = {'a': ['href', 'title'], 'span': ['class'], 'div': ['class']}


@register.filter
def sanitize_richtext(value):
    """Sanitize HTML from rich text fields for safe display."""
    if not value:
        return ''
    cleaned = bleach.clean(value, tags=ALLOWED_TAGS, attributes=ALLOWED_ATTRS, strip=True)
    return mark_safe(cleaned)


@register.filter
def get_item(dictionary, key):
    if dictionary is None:
        return None
    return dictionary.get(key)


@register.filter
def status_badge(meeting):
    """Bootstrap badge class for a meeting status"""
    if meeting.is_cancelled:
        return 'bg-secondary'
    return 'bg-success' if meeting.is_upcoming else 'bg-light text-dark'
