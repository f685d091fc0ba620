"""
Background schedulers that act without direct user invocation.

- **reminder_scheduler.py**: Pending reminders table plus the tick that
  delivers due reminders by DM, falling back to the origin channel.
  Delivery is at-most-once; a due reminder is removed after one attempt.

- **poll_scheduler.py**: Per-guild active poll lists plus the tick that
  closes expired polls, tallies their reactions and posts the results.
  Failures are isolated per poll.

- **poll_tally.py**: Pure vote counting, percentages, winner/tie detection
  and progress bar rendering.

Both schedulers receive their store and delivery adapter explicitly and are
driven by the polling loops in ``steward.cog.listener.scheduler_cog``.
"""
