"""
coffeechat - find free time in a Google Calendar and send coffee chat invitations.
"""

__version__ = "0.1.0"
