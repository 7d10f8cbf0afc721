"""Taskplanner — auto-scheduler for a personal task manager."""
