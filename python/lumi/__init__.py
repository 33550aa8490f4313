"""Lumi Chat backend: polling chat room, direct messages and Spotify jam sessions."""
