"""Client-billing time tracker core: timers, time entries, reports and invoices."""

__version__ = "0.1.0"
