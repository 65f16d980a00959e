"""Mafia game commands: moderator/channel management and vote tallies."""
