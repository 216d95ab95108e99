"""Card Sync — Run Orchestration"""
