def join_link(base_url: str, quiz_id: str) -> str:
    """Shareable URL that opens the join screen for ``quiz_id``."""
    return f"{base_url.rstrip('/')}/#/join/{quiz_id}"
