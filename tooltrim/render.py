"""Line builder shared by the presenters."""


def plural(count: int, word: str, plural_word: str | None = None) -> str:
    """'1 file' / '3 files'."""
    if count == 1:
        return f"{count} {word}"
    return f"{count} {plural_word or word + 's'}"


class Lines:
    """Accumulates output lines; passed explicitly through each formatter."""

    def __init__(self, header: str = ""):
        self._lines: list[str] = [header] if header else []

    def add(self, line: str) -> "Lines":
        self._lines.append(line)
        return self

    def detail(self, line: str) -> "Lines":
        self._lines.append(f"  {line}")
        return self

    def section(self, title: str, items) -> "Lines":
        """Titled block of detail lines; skipped entirely when ``items`` is empty."""
        items = list(items)
        if items:
            self._lines.append(title)
            for item in items:
                self.detail(item)
        return self

    def __len__(self) -> int:
        return len(self._lines)

    def render(self) -> str:
        return "\n".join(self._lines)
