"""Scheduling services: codecs, recurrence rules, job registry, store, scheduler, broadcast."""
