"""Notifier package for the OGS game notifier.

This module group polls the live game list, filters each cycle against the
user's settings, and raises a desktop notification for every game that newly
qualifies. It also holds the CLI entry point, the settings file, the
notification delivery queue and logging support used by the runtime in
`notifier.notifier`.
"""
