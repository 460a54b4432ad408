"""
Logging filters to suppress expected application errors so they don't
clutter logs with WARNING tracebacks (e.g. PermissionDenied or a form the
user has to correct).
"""

import logging

from django.core.exceptions import PermissionDenied


class SuppressExpectedRequestErrors(logging.Filter):
    """
    Filter out log records for expected outcomes: 403 Permission Denied
    responses handled by Django and form validation failures that are shown
    back to the user for correction.
    """

    def filter(self, record):
        if record.exc_info:
            _, exc_value, _ = record.exc_info
            if isinstance(exc_value, PermissionDenied):
                return False
        msg = record.getMessage()
        if "Forbidden (Permission denied)" in msg:
            return False
        if "Form validation failed" in msg:
            return False
        return True
