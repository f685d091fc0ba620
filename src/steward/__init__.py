"""
Steward - Discord Community Management Bot

Steward keeps a community's scheduled work running in the background while
members interact through slash commands.

Core Components:

- **Keyed Store**: One JSON file per table, keyed by guild id (and user id
  for user-scoped tables), with locked read-modify-write helpers
- **Reminder Scheduler**: Delivers due reminders by DM, falling back to the
  channel the reminder was created in; at-most-once
- **Poll Scheduler**: Closes timed polls, tallies reaction votes, announces
  the winner or the tie, and greys out the original poll
- **Cogs**: ``/remind``, ``/reminders``, ``/cancelreminder`` and ``/poll``
  plus the polling loops that drive both schedulers

Usage:
    from steward.main import main
    main()
"""
