from dataclasses import dataclass, field
from urllib.parse import unquote_to_bytes


@dataclass
class Request:
    method: str
    path: str
    headers: dict[str, str]
    query_params: dict[str, list]
    body: bytes
    version: str
    path_params: dict[str, str] = field(default_factory=dict)

    def param(self, name: str) -> str:
        if not name:
            raise ValueError("Parameter name cannot be empty")

        if name not in self.path_params:
            raise KeyError(f"Route has no '{name}' parameter")

        return self.path_params[name]

    def param_bytes(self, name: str) -> bytes:
        """Percent-decoded raw bytes of a path parameter"""
        return unquote_to_bytes(self.param(name))

    @property
    def keep_alive(self) -> bool:
        return self.headers.get('connection', '').lower() != 'close'
