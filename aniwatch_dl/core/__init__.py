"""
Core application engine for orchestrating the download process.

The `DownloadManager` acts as the session coordinator: it picks the anime,
resolves the episode selection, and delegates each episode to the
`EpisodeProcessor`, which in turn relies on the `StreamResolver`.
"""
