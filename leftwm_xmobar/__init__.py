"""
leftwm-xmobar

Status bar control program for leftwm: reads leftwm's state socket and
renders clickable tag lists into xmobar markup, one bar per viewport.
"""

__version__ = "1.0.0"
