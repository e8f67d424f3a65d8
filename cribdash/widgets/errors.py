"""Widget error kinds. All of them are contained per widget."""


class FetchFailure(Exception):
    """Fetching a widget's data from its endpoint failed."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"fetch {url} failed: {reason}")
        self.url = url
        self.reason = reason


class MissingDataError(ValueError):
    """A series that needs at least one value was empty."""


class MalformedSampleError(ValueError):
    """A sample's value field is not numeric."""

    def __init__(self, raw_value, row=None):
        super().__init__(f"non-numeric sample value {raw_value!r}")
        self.raw_value = raw_value
        self.row = row
