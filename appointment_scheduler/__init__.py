"""
Appointment scheduling for a single resource across timezones.
"""

__version__ = "1.0.0"
