"""Collaborators and infrastructure for calendarlog: configuration, clock,
event log, scheduler and resource allocation."""
