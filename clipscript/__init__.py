"""ClipScript - content generation studio core.

Local user store, credit ledger, content library, activity log and
speech export.
"""

__version__ = "1.0.0"
