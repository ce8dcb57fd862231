"""
handlers/ - Presentation Layer
================================
Telegram command handlers. Each handler parses the command, calls the
user's session services and replies. No business logic lives here.
"""
