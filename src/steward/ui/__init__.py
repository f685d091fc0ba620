"""
Discord embed builders.

- **reminder_embed.py**: Delivered reminder notification and the ``/reminders`` listing.
- **poll_embed.py**: Open poll, results announcement, and closed-poll state.
"""
