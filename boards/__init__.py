"""
Changelog filtering and leaderboard snapshot caching for the boards service.
"""
