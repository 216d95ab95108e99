"""Card Sync — bigweb cardset scraper with resumable sync."""
