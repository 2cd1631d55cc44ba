"""
ashbot - Matrix room automation bot.
"""

__version__ = "0.3.0"
__logo__ = "🌋"
