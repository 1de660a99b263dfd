"""
SmartQQ Python Client Examples

- echo_bot.py: Echo bot for friends, groups and discussions
"""
