"""
Parsed HTTP request handed to the dispatcher.
"""
from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qsl


@dataclass
class HttpRequest:
    """Path, raw query string and first-value query parameters"""
    path: str
    query: str = ''
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_uri(cls, uri: str) -> 'HttpRequest':
        """Build a request from a path with an optional query string"""
        path, _, query = uri.partition('?')
        params = {}
        for key, value in parse_qsl(query, keep_blank_values=True):
            params.setdefault(key, value)
        return cls(path=path or '/', query=query, params=params)

    @property
    def uri(self) -> str:
        return f"{self.path}?{self.query}" if self.query else self.path

    def get_param(self, name: str, default=None):
        """Query parameter value, or default when absent"""
        return self.params.get(name, default)

    def get_int_param(self, name: str, default: int) -> int:
        """Integer query parameter; a malformed value raises ValueError"""
        value = self.params.get(name)
        if value is None or value == '':
            return default
        return int(value)

    def get_bool_param(self, name: str, default: bool = False) -> bool:
        value = self.params.get(name)
        if value is None:
            return default
        # Bare "?invert" counts as set
        return value.lower() in ('', '1', 'true', 'yes', 'on')
