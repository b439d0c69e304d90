"""
TalkItOut - practice workplace conflict conversations with an AI coworker.
"""

__version__ = "0.1.0"
