"""Aggregate state, queries and actions for calendarlog."""
