

# =============================================================================
# Text Processing Utilities
# =============================================================================


class TextProcessor:
    @staticmethod
    def truncate_url(url: str, max_length: int = 100) -> str:
        # The search state blob in ``?s=`` is huge and unreadable in logs.
        idx = url.find("?s=")
        if idx != -1:
            return url[:idx] + "?s=<state>&..."
        if len(url) > max_length:
            return url[:max_length] + "..."
        return url

    @staticmethod
    def split_csv(value: str) -> list[str]:
        return [part.strip() for part in value.split(",") if part.strip()]
