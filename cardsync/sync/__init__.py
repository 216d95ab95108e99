"""Card Sync — Sync Layer"""
