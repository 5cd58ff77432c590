from fastapi import Request

JSON = "json"
TEXT = "text"
HTML = "html"


def _preferred_media_type(accept: str) -> str:
    best, best_q = "", -1.0
    for part in accept.split(","):
        media_type, *params = [p.strip() for p in part.split(";")]
        if not media_type:
            continue
        q = 1.0
        for param in params:
            key, _, value = param.partition("=")
            if key.strip() == "q":
                try:
                    q = float(value)
                except ValueError:
                    q = 0.0
        # first listed wins on a tie
        if q > best_q:
            best, best_q = media_type.lower(), q
    return best


def preferred_format(request: Request) -> str:
    """json / text / html, picked the way curl and browsers expect."""
    media_type = _preferred_media_type(request.headers.get("accept", ""))
    user_agent = request.headers.get("user-agent", "")

    if media_type == "application/json":
        return JSON
    if user_agent.startswith("curl") or media_type == "text/plain":
        return TEXT
    return HTML
