"""FormFill gateway: AI-assisted form filling behind auth, rate limits and caching."""
