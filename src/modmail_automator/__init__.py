"""
Modmail Automator: rule-driven autoresponses for subreddit modmail
"""
__version__ = '1.0.0'
