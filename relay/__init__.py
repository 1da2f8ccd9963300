"""Poll-based session relay: users, chat rooms and mailboxes behind one request/reply channel."""

__version__ = "1.0.0"
