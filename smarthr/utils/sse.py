def sse(event: str, data: str) -> str:
    lines = (data or "").splitlines() or [""]
    payload = "\n".join(f"data: {line}" for line in lines)
    return f"event: {event}\n{payload}\n\n"
